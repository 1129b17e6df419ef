import pytest

from otelupgrade.collector import Collector, CollectorSpec
from otelupgrade.configyaml import UpgradeError, config_from_string, config_to_string
from otelupgrade.steps_late import (
    upgrade_0_36_0,
    upgrade_0_38_0,
    upgrade_0_39_0,
    upgrade_0_41_0,
)


def make_collector(config="", args=None, version=""):
    collector = Collector(
        name="my-instance",
        namespace="default",
        labels={"app.kubernetes.io/managed-by": "opentelemetry-operator"},
        spec=CollectorSpec(config=config, args=dict(args or {})),
    )
    collector.status.version = version
    return collector


def _tls_files():
    return {"client_ca_file": "client.pem", "cert_file": "server.crt", "key_file": "server.key"}


def _config_0_36():
    protocol = lambda: {"endpoint": "mysite.local:55690", "tls_settings": _tls_files()}  # noqa: E731
    return {
        "receivers": {"otlp/mtls": {"protocols": {"grpc": protocol(), "http": protocol()}}},
        "exporters": {
            "otlp": {
                "endpoint": "example.com",
                "ca_file": "/var/lib/mycert.pem",
                "insecure": True,
                "key_file": "keyfile",
                "min_version": "1.0.0",
                "max_version": "2.0.2",
                "insecure_skip_verify": True,
                "server_name_override": "hii",
            }
        },
        "service": {"pipelines": {"traces": {"receivers": ["otlp/mtls"], "exporters": ["otlp"]}}},
    }


def test_0_36_0_upgrade():
    res = upgrade_0_36_0(make_collector(config_to_string(_config_0_36()), version="0.35.0"))
    protocol = {"endpoint": "mysite.local:55690", "tls": _tls_files()}
    assert config_from_string(res.spec.config) == {
        "exporters": {
            "otlp": {
                "endpoint": "example.com",
                "tls": {
                    "ca_file": "/var/lib/mycert.pem",
                    "insecure": True,
                    "insecure_skip_verify": True,
                    "key_file": "keyfile",
                    "max_version": "2.0.2",
                    "min_version": "1.0.0",
                    "server_name_override": "hii",
                },
            }
        },
        "receivers": {"otlp/mtls": {"protocols": {"grpc": protocol, "http": protocol}}},
        "service": {"pipelines": {"traces": {"exporters": ["otlp"], "receivers": ["otlp/mtls"]}}},
    }
    assert res.spec.config.index("exporters:") < res.spec.config.index("receivers:")
    msgs = res.status.messages
    for proto in ("grpc", "http"):
        assert (
            "upgrade to v0.36.0 has changed the tls_settings field name to tls in "
            f"{proto} protocol of otlp/mtls receiver"
        ) in msgs
    assert (
        "upgrade to v0.36.0 move tls config i.e. ca_file, key_file, cert_file, min_version, "
        "max_version to tls.* in otlp exporter" in msgs
    )


def test_0_36_0_empty_config_is_untouched():
    res = upgrade_0_36_0(make_collector(""))
    assert res.spec.config == ""
    assert res.status.messages == []


def test_0_36_0_invalid_config_raises():
    with pytest.raises(UpgradeError, match="couldn't upgrade to v0.36.0"):
        upgrade_0_36_0(make_collector("receivers: [unclosed"))


def _config_0_38():
    return {
        "receivers": {"otlp/mtls": {"protocols": {"http": {"endpoint": "mysite.local:55690"}}}},
        "exporters": {"otlp": {"endpoint": "example.com"}},
        "service": {"pipelines": {"traces": {"receivers": ["otlp/mtls"], "exporters": ["otlp"]}}},
    }


def _config_0_38_with_logging():
    cfg = _config_0_38()
    cfg["service"]["telemetry"] = {
        "logs": {"development": True, "encoding": "hii", "level": "debug"}
    }
    return cfg


LOGGING_ARGS = {
    "--hii": "hello",
    "--log-profile": "",
    "--log-format": "hii",
    "--log-level": "debug",
    "--arg1": "",
}

MESSAGE_0_38 = (
    "upgrade to v0.38.0 dropped the deprecated logging arguments "
    "i.e. [--log-format --log-level --log-profile] from otelcol custom resource otelcol.spec.args and "
    "adding them to otelcol.spec.config.service.telemetry.logs, if no logging parameters are configured already."
)


def test_0_38_0_moves_logging_args_into_config():
    res = upgrade_0_38_0(make_collector(config_to_string(_config_0_38()), LOGGING_ARGS, "0.37.0"))
    assert res.spec.args == {"--hii": "hello", "--arg1": ""}
    assert config_from_string(res.spec.config) == _config_0_38_with_logging()
    assert res.spec.config.endswith(
        "  telemetry:\n    logs:\n      development: true\n      encoding: hii\n      level: debug\n"
    )
    assert res.status.messages[0] == MESSAGE_0_38


def test_0_38_0_keeps_existing_logging_config():
    config = config_to_string(_config_0_38_with_logging())
    res = upgrade_0_38_0(make_collector(config, LOGGING_ARGS, "0.37.0"))
    assert res.spec.config == config
    assert res.spec.args == {"--hii": "hello", "--arg1": ""}
    assert res.status.messages[0] == MESSAGE_0_38


def test_0_38_0_without_args_is_untouched():
    config = config_to_string(_config_0_38())
    res = upgrade_0_38_0(make_collector(config))
    assert res.spec.config == config
    assert res.status.messages == []


def test_0_38_0_without_logging_args_is_untouched():
    config = config_to_string(_config_0_38())
    res = upgrade_0_38_0(make_collector(config, {"--hii": "hello"}))
    assert res.spec.config == config
    assert res.spec.args == {"--hii": "hello"}
    assert res.status.messages == []


def test_0_38_0_creates_service_section():
    res = upgrade_0_38_0(make_collector("", {"--log-level": "info"}))
    assert res.spec.config == "service:\n  telemetry:\n    logs:\n      level: info\n"
    assert res.spec.args == {}
    assert "i.e. [--log-level]" in res.status.messages[0]


def _limiter_processors(with_ballast):
    settings = {"check_interval": "5s", "limit_mib": 4000, "spike_limit_mib": 500}
    if with_ballast:
        settings["ballast_size_mib"] = 2000
    return {"memory_limiter": None, "memory_limiter/with-settings": settings}


BALLAST_MESSAGE = (
    "upgrade to v0.39.0 has dropped the ballast_size_mib field name from "
    "memory_limiter/with-settings processor"
)


def test_0_39_0_renames_httpd_and_drops_ballast():
    http = {"protocols": {"http": {"endpoint": "mysite.local:55690"}}}
    config = {
        "receivers": {"httpd/mtls": http, "httpd": None},
        "processors": _limiter_processors(True),
        "service": {
            "pipelines": {"metrics": {"receivers": ["httpd/mtls", "httpd"], "exporters": ["nop"]}}
        },
    }
    res = upgrade_0_39_0(make_collector(config_to_string(config), version="0.38.0"))
    assert config_from_string(res.spec.config) == {
        "processors": _limiter_processors(False),
        "receivers": {"apache": None, "apache/mtls": http},
        "service": {
            "pipelines": {"metrics": {"exporters": ["nop"], "receivers": ["apache/mtls", "apache"]}}
        },
    }
    assert "null" not in res.spec.config
    assert "  apache:\n  apache/mtls:\n" in res.spec.config
    assert res.status.messages == [
        BALLAST_MESSAGE,
        "upgrade to v0.39.0 has renamed the httpd/mtls to apache/mtls receiver",
        "upgrade to v0.39.0 has renamed the httpd to apache receiver",
    ]


def test_0_39_0_drops_ballast_only():
    http = {"protocols": {"http": {"endpoint": "mysite.local:55690"}}}
    config = {
        "receivers": {"otlp/mtls": http, "otlp": None},
        "processors": _limiter_processors(True),
        "service": {
            "pipelines": {"traces": {"receivers": ["otlp/mtls", "otlp"], "exporters": ["nop"]}}
        },
    }
    res = upgrade_0_39_0(Collector(spec=CollectorSpec(config=config_to_string(config))))
    assert config_from_string(res.spec.config) == {
        "processors": _limiter_processors(False),
        "receivers": {"otlp": None, "otlp/mtls": http},
        "service": {
            "pipelines": {"traces": {"exporters": ["nop"], "receivers": ["otlp/mtls", "otlp"]}}
        },
    }
    assert "null" not in res.spec.config
    assert res.status.messages == [BALLAST_MESSAGE]


def test_0_39_0_without_service_keeps_receiver_name():
    config = "receivers:\n  httpd:\n    endpoint: localhost:8080\n"
    res = upgrade_0_39_0(make_collector(config))
    assert res.spec.config == config
    assert res.status.messages == []


ORIGINS = ["https://foo.bar.com", "https://*.test.com"]
PIPELINES_0_41 = {"pipelines": {"metrics": {"receivers": ["otlp"], "exporters": ["nop"]}}}


def _cors_message(key):
    return (
        f"upgrade to v0.41.0 has re-structured the {key} inside otlp "
        "receiver config according to the upstream otlp receiver changes in 0.41.0 release"
    )


def test_0_41_0_restructures_origins_and_headers():
    config = {
        "receivers": {
            "otlp": {"cors_allowed_origins": ORIGINS, "cors_allowed_headers": ["ExampleHeader"]}
        },
        "service": PIPELINES_0_41,
    }
    res = upgrade_0_41_0(make_collector(config_to_string(config), version="0.40.0"))
    assert config_from_string(res.spec.config) == {
        "receivers": {
            "otlp": {"cors": {"allowed_headers": ["ExampleHeader"], "allowed_origins": ORIGINS}}
        },
        "service": PIPELINES_0_41,
    }
    assert _cors_message("cors_allowed_origins") in res.status.messages
    assert _cors_message("cors_allowed_headers") in res.status.messages


def test_0_41_0_restructures_origins():
    config = {
        "receivers": {"otlp": {"cors_allowed_origins": ORIGINS}},
        "service": PIPELINES_0_41,
    }
    res = upgrade_0_41_0(make_collector(config_to_string(config), version="0.40.0"))
    assert config_from_string(res.spec.config) == {
        "receivers": {"otlp": {"cors": {"allowed_origins": ORIGINS}}},
        "service": PIPELINES_0_41,
    }
    assert res.status.messages[0] == _cors_message("cors_allowed_origins")


def test_0_41_0_leaves_other_receivers_alone():
    config = "receivers:\n  jaeger:\n    cors_allowed_origins:\n    - https://foo.bar.com\n"
    res = upgrade_0_41_0(make_collector(config))
    assert res.spec.config == config
    assert res.status.messages == []


def test_0_41_0_invalid_config_raises():
    with pytest.raises(UpgradeError, match="couldn't upgrade to v0.41.0"):
        upgrade_0_41_0(make_collector("- just\n- a list\n"))