"""
测试状态解析与聚合
"""

import json
import logging
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from iop_checker.collectors.probe import IOP_GVR, ClusterResourceProbe
from iop_checker.status.aggregator import (
    StatusTarget,
    aggregate,
    check_install_status,
    decode_install_status,
    decode_status_document,
    format_report,
)
from iop_checker.status.models import ComponentStatus, InstallStatus, InstallStatusReport
from iop_checker.utils.errors import (
    ClusterAccessError,
    DecodeError,
    NotReadyError,
    PollTimeoutError,
    ResourceNotFoundError,
    UnhealthyError,
)
from iop_checker.utils.retry import RetryPolicy

H = InstallStatus.HEALTHY


def _iop(status=None):
    resource = {
        "apiVersion": "install.istio.io/v1alpha1",
        "kind": "IstioOperator",
        "metadata": {"name": "test-istiocontrolplane", "namespace": "istio-system"},
        "spec": {"profile": "default"},
    }
    if status is not None:
        resource["status"] = status
    return resource


HEALTHY_STATUS = {
    "status": "HEALTHY",
    "componentStatus": {
        "Pilot": {"status": "HEALTHY"},
        "IngressGateways": {"status": "HEALTHY"},
    },
}


# === aggregate ===

def test_all_healthy_yields_no_errors():
    errs = aggregate(H, {"Pilot": H, "Base": H, "IngressGateways": H})
    assert not errs
    assert len(errs) == 0
    assert errs.to_error() is None


@pytest.mark.parametrize(
    "root, components, expected",
    [
        (InstallStatus.ERROR, {}, 1),
        (InstallStatus.RECONCILING, {"Pilot": H}, 1),
        (H, {"Pilot": InstallStatus.ERROR}, 1),
        (H, {"Pilot": InstallStatus.ERROR, "Base": InstallStatus.UNKNOWN}, 2),
        (InstallStatus.UNKNOWN, {"Pilot": InstallStatus.ERROR, "Base": H, "Cni": InstallStatus.NONE}, 3),
    ],
)
def test_one_entry_per_unhealthy_entity(root, components, expected):
    assert len(aggregate(root, components)) == expected


def test_error_messages_are_ordered_by_component_name():
    errs = aggregate(
        InstallStatus.RECONCILING,
        {"Pilot": InstallStatus.ERROR, "Base": InstallStatus.RECONCILING, "Cni": H},
    )
    assert errs.errors == [
        "got IstioOperator status: RECONCILING",
        "got component: Base status: RECONCILING",
        "got component: Pilot status: ERROR",
    ]
    unhealthy = errs.to_error()
    assert isinstance(unhealthy, UnhealthyError)
    assert unhealthy.errors == errs.errors


# === 解析 ===

def test_unknown_fields_are_tolerated():
    report = decode_status_document({
        "status": "HEALTHY",
        "message": "installed",
        "futureField": {"nested": True},
        "componentStatus": {"Pilot": {"status": "HEALTHY", "error": "", "resourceVersion": 3}},
    })
    assert report.status == H
    assert dict(report.components) == {"Pilot": H}


def test_numeric_and_missing_statuses():
    report = decode_status_document({"status": 3, "componentStatus": {"Pilot": {}, "Base": {"status": 4}}})
    assert report.status == H
    assert report.components["Pilot"] == InstallStatus.NONE
    assert report.components["Base"] == InstallStatus.ERROR


def test_unrecognized_numeric_status_is_unknown():
    report = decode_status_document({"status": 42, "componentStatus": {"Pilot": {"status": 9}}})
    assert report.status == InstallStatus.UNKNOWN
    assert report.components["Pilot"] == InstallStatus.UNKNOWN
    assert aggregate(report.status, report.components).errors == [
        "got IstioOperator status: UNKNOWN",
        "got component: Pilot status: UNKNOWN",
    ]


def test_decode_json_text():
    report = decode_status_document(json.dumps(HEALTHY_STATUS))
    assert report.status == H
    assert set(report.components) == {"Pilot", "IngressGateways"}


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "BROKEN"},
        {"status": "HEALTHY", "componentStatus": ["Pilot"]},
        {"status": "HEALTHY", "componentStatus": {"Pilot": "HEALTHY"}},
        {"status": "HEALTHY", "componentStatus": {"": {"status": "HEALTHY"}}},
        "just a string",
        "status: [unclosed",
        b"\xff\xfe",
    ],
)
def test_malformed_status_raises_decode_error(payload):
    with pytest.raises(DecodeError):
        decode_status_document(payload)


def test_report_is_immutable():
    report = decode_status_document(HEALTHY_STATUS)
    with pytest.raises(TypeError):
        report.components["Pilot"] = InstallStatus.ERROR
    with pytest.raises(ValidationError):
        report.status = InstallStatus.ERROR


def test_component_mapping_is_immutable():
    report = decode_status_document(HEALTHY_STATUS)
    with pytest.raises(TypeError):
        report.component_status["Pilot"] = ComponentStatus(status="ERROR")
    with pytest.raises(TypeError):
        report.component_status[""] = ComponentStatus(status="HEALTHY")
    assert report.components["Pilot"] == H
    assert "" not in report.components

    # 未上报组件时同样是只读映射
    empty = InstallStatusReport()
    with pytest.raises(TypeError):
        empty.component_status["Pilot"] = ComponentStatus()


def test_missing_status_means_not_yet_reporting():
    assert decode_install_status(_iop()) is None
    assert decode_install_status(json.dumps(_iop())) is None


def test_decode_install_status_from_yaml_resource():
    text = """
apiVersion: install.istio.io/v1alpha1
kind: IstioOperator
metadata:
  name: test-istiocontrolplane
status:
  status: RECONCILING
  componentStatus:
    Pilot:
      status: HEALTHY
"""
    report = decode_install_status(text)
    assert report.status == InstallStatus.RECONCILING
    assert report.components["Pilot"] == H


def test_non_object_status_field_is_a_decode_error():
    with pytest.raises(DecodeError):
        decode_install_status(_iop(status="HEALTHY"))


def test_format_report_is_sorted_json():
    report = decode_status_document(HEALTHY_STATUS)
    assert json.loads(format_report(report)) == {
        "componentStatus": {"IngressGateways": "HEALTHY", "Pilot": "HEALTHY"},
        "status": "HEALTHY",
    }


# === check_install_status ===

def test_check_install_status_healthy(fake_probe):
    fake_probe.add(IOP_GVR.resource, "istio-system", "test-istiocontrolplane", _iop(HEALTHY_STATUS))

    report = check_install_status(fake_probe, RetryPolicy(timeout=5, delay=0.01))

    assert report.status == H
    assert fake_probe.calls == [(IOP_GVR.resource, "istio-system", "test-istiocontrolplane")]


def test_malformed_status_fails_without_retry(fake_probe):
    fake_probe.add(
        IOP_GVR.resource, "istio-system", "test-istiocontrolplane",
        _iop({"status": "HEALTHY", "componentStatus": 5}),
    )

    with pytest.raises(DecodeError):
        check_install_status(fake_probe, RetryPolicy(timeout=5, delay=0.01))

    # 只查询了一次 CR, 没有进入 operator 就绪检查
    assert fake_probe.calls == [(IOP_GVR.resource, "istio-system", "test-istiocontrolplane")]


def test_waits_until_reconciled():
    probe = MagicMock(spec=ClusterResourceProbe)
    probe.get_custom_resource.side_effect = [
        ResourceNotFoundError("istiooperators test-istiocontrolplane not found"),
        _iop(),
        _iop({"status": "RECONCILING", "componentStatus": {"Pilot": {"status": "RECONCILING"}}}),
        _iop(HEALTHY_STATUS),
    ]

    report = check_install_status(probe, RetryPolicy(timeout=5, delay=0.01))

    assert report.status == H
    assert probe.get_custom_resource.call_count == 4
    probe.get_custom_resource.assert_called_with(IOP_GVR, "istio-system", "test-istiocontrolplane")
    # status 缺失的那一次检查了 operator 的 Service 和 Pod
    probe.get_service.assert_called_once_with("istio-operator", "istio-operator")
    probe.check_pods_ready.assert_called_once_with("istio-operator", "name=istio-operator")
    probe.get_pod_logs.assert_not_called()


def test_operator_service_missing(fake_probe, fast_policy):
    fake_probe.add(IOP_GVR.resource, "istio-system", "test-istiocontrolplane", _iop())

    with pytest.raises(PollTimeoutError) as exc_info:
        check_install_status(fake_probe, fast_policy)

    assert isinstance(exc_info.value.last_error, NotReadyError)
    assert "istio operator svc is not ready" in str(exc_info.value.last_error)
    assert ("Logs", "istio-operator", "name=istio-operator") in fake_probe.calls


def test_operator_ready_but_status_not_reported(fake_probe, fast_policy):
    fake_probe.add(IOP_GVR.resource, "istio-system", "test-istiocontrolplane", _iop())
    fake_probe.add("Service", "istio-operator", "istio-operator")
    fake_probe.ready_pods["istio-operator"] = ["istio-operator-5d8f9c7b-abcde"]

    with pytest.raises(PollTimeoutError) as exc_info:
        check_install_status(fake_probe, fast_policy)

    assert "status not found" in str(exc_info.value.last_error)


def test_unhealthy_after_timeout_raises_unhealthy_error(fake_probe, fast_policy, caplog):
    fake_probe.add(
        "istiooperators", "custom-ns", "my-iop",
        _iop({"status": "ERROR", "componentStatus": {"Pilot": {"status": "ERROR"}, "Base": {"status": "HEALTHY"}}}),
    )
    fake_probe.logs = "error reconciling Pilot"
    target = StatusTarget(namespace="custom-ns", name="my-iop")

    with caplog.at_level(logging.INFO, logger="iop_checker.status.aggregator"):
        with pytest.raises(UnhealthyError) as exc_info:
            check_install_status(fake_probe, fast_policy, target)

    assert exc_info.value.errors == [
        "got IstioOperator status: ERROR",
        "got component: Pilot status: ERROR",
    ]
    assert isinstance(exc_info.value.__cause__, PollTimeoutError)
    assert "error reconciling Pilot" in caplog.text


def test_log_fetch_failure_does_not_mask_error(fast_policy):
    probe = MagicMock(spec=ClusterResourceProbe)
    probe.get_custom_resource.return_value = _iop({"status": "ERROR"})
    probe.get_pod_logs.side_effect = ClusterAccessError("no pods match selector")

    with pytest.raises(UnhealthyError):
        check_install_status(probe, fast_policy)
    probe.get_pod_logs.assert_called_once()
