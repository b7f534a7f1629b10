"""
Grafana OTLP Metrics Exporter
==============================

Pushes external classifier metrics to Grafana Cloud via OTLP/HTTP JSON.

Metrics exported:
- classifier_requests_total: one data point per classifier call, tagged with outcome
- classifier_latency_ms: classifier call latency in milliseconds
"""

import base64
import time
from typing import Dict, List, Optional

import httpx

from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

OTLP_METRICS_PATH = "/otlp/v1/metrics"


class GrafanaOTLPExporter:
    """
    Export classifier metrics to Grafana Cloud via the OTLP HTTP endpoint.

    The exporter is disabled unless host, API key and instance id are all set;
    a disabled exporter accepts calls and returns False.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None,
        service_name: str = "deskwatch",
        service_version: str = "1.0.0",
        environment: str = "development",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_seconds: float = 10.0,
    ):
        self._host = host
        self._api_key = api_key
        self._instance_id = instance_id
        self._service_name = service_name
        self._service_version = service_version
        self._environment = environment
        self._transport = transport
        self._timeout = timeout_seconds
        self._enabled = bool(host and api_key and instance_id)

        if self._enabled:
            auth_pair = f"{instance_id}:{api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            self._url = host if OTLP_METRICS_PATH in host else f"{host.rstrip('/')}{OTLP_METRICS_PATH}"
        else:
            self._auth_encoded = ""
            self._url = ""
            logger.info(
                "Grafana OTLP exporter not configured - metrics will not be exported",
                extra={
                    "host_configured": bool(host),
                    "api_key_configured": bool(api_key),
                    "instance_id_configured": bool(instance_id),
                },
            )

    def is_enabled(self) -> bool:
        return self._enabled

    def build_classifier_payload(
        self,
        classifier: str,
        model: str,
        outcome: str,
        latency_ms: int,
        timestamp_ns: Optional[int] = None,
        attributes: Optional[Dict[str, str]] = None,
    ) -> dict:
        """Build the OTLP ``resourceMetrics`` document for one classifier call."""
        timestamp_ns = timestamp_ns or int(time.time() * 1_000_000_000)

        metric_attributes = self._attributes({
            "classifier": classifier,
            "model": model,
            "outcome": outcome,
            "service": self._service_name,
            **(attributes or {}),
        })

        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": self._attributes({
                            "service.name": self._service_name,
                            "service.version": self._service_version,
                            "deployment.environment": self._environment,
                        })
                    },
                    "scopeMetrics": [
                        {
                            "metrics": [
                                self._gauge(
                                    "classifier_requests_total", "1",
                                    "External classifier calls", 1,
                                    timestamp_ns, metric_attributes,
                                ),
                                self._gauge(
                                    "classifier_latency_ms", "ms",
                                    "External classifier call latency", latency_ms,
                                    timestamp_ns, metric_attributes,
                                ),
                            ]
                        }
                    ],
                }
            ]
        }

    async def export_classifier_call(
        self,
        classifier: str,
        model: str,
        outcome: str,
        latency_ms: int,
        attributes: Optional[Dict[str, str]] = None,
    ) -> bool:
        """
        Export one classifier call.

        Returns:
            True if Grafana accepted the payload, False otherwise. Export
            failures are logged and never raised.
        """
        if not self._enabled:
            return False

        payload = self.build_classifier_payload(classifier, model, outcome, latency_ms, attributes=attributes)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id),
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("Error exporting metrics to Grafana", extra={"error": str(e)})
            return False

        if response.status_code in (200, 202):
            logger.debug(
                "Classifier metrics exported",
                extra={"classifier": classifier, "outcome": outcome, "latency_ms": latency_ms},
            )
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={"status_code": response.status_code, "response": response.text[:500]},
        )
        return False

    @staticmethod
    def _attributes(values: Dict[str, str]) -> List[dict]:
        return [{"key": key, "value": {"stringValue": str(value)}} for key, value in values.items()]

    @staticmethod
    def _gauge(name: str, unit: str, description: str, value: int, timestamp_ns: int, attributes: List[dict]) -> dict:
        return {
            "name": name,
            "unit": unit,
            "description": description,
            "gauge": {
                "dataPoints": [
                    {"asInt": int(value), "timeUnixNano": timestamp_ns, "attributes": attributes}
                ]
            },
        }
