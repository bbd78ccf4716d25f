"""OpenTelemetry metrics for the interception certificate authority."""

from collections.abc import Iterator

from opentelemetry import metrics

meter = metrics.get_meter("interception")

# Issuance counters
certificates_issued_total = meter.create_counter(
    name="interception_certificates_issued_total",
    description="Certificates handed to the TLS layer, by source",
    unit="1",
)

certificates_generated_total = meter.create_counter(
    name="interception_certificates_generated_total",
    description="Leaf certificates synthesized and signed by the root CA",
    unit="1",
)

certificate_generation_duration = meter.create_histogram(
    name="interception_certificate_generation_duration_seconds",
    description="Leaf certificate generation duration in seconds",
    unit="s",
)

# Override directory
custom_certificates_loaded_total = meter.create_counter(
    name="interception_custom_certificates_loaded_total",
    description="Override certificate pairs loaded from the override directory",
    unit="1",
)

# Root CA gauge - track storage type and key size
_ca_key_state: dict[str, str] | None = None


def _get_ca_key_loaded(
    options: metrics.CallbackOptions,
) -> Iterator[metrics.Observation]:
    """Callback to report root CA loaded status."""
    if _ca_key_state:
        yield metrics.Observation(1, _ca_key_state)
    else:
        yield metrics.Observation(0, {"storage_type": "none"})


ca_key_loaded_gauge = meter.create_observable_gauge(
    name="interception_ca_key_loaded",
    description="Root CA loaded (1=yes, 0=no)",
    unit="1",
    callbacks=[_get_ca_key_loaded],
)


class InterceptionMetrics:
    """Facade for interception metrics with proper labels."""

    def record_certificate_issued(self, source: str) -> None:
        """Record an issued certificate. Labels: source=exact|wildcard|cache|generated"""
        certificates_issued_total.add(1, {"source": source})

    def record_certificate_generated(self, duration_seconds: float) -> None:
        """Record leaf synthesis with duration."""
        certificates_generated_total.add(1)
        certificate_generation_duration.record(duration_seconds)

    def record_custom_certificates_loaded(self, kind: str, count: int) -> None:
        """Record override pairs loaded. Labels: kind=exact|wildcard|root"""
        if count:
            custom_certificates_loaded_total.add(count, {"kind": kind})

    def record_ca_key_loaded(self, storage_type: str, key_size: int) -> None:
        """Record root CA loaded with storage type."""
        global _ca_key_state
        _ca_key_state = {"storage_type": storage_type, "key_size": str(key_size)}


# Singleton instance
interception_metrics = InterceptionMetrics()
