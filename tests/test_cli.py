import json

import pytest

from limitguard import cli
from limitguard.quantity import Quantity
from tests.helpers import make_container

LIMIT_RANGE = {
    "apiVersion": "v1",
    "kind": "LimitRange",
    "metadata": {"name": "mem-defaults", "namespace": "team-a"},
    "spec": {
        "limits": [
            {
                "type": "Container",
                "defaultRequest": {"memory": "50Mi"},
                "default": {"memory": "64Mi"},
                "maxLimitRequestRatio": {"memory": "1.5"},
            }
        ]
    },
}


def write_json(path, data):
    path.write_text(json.dumps(data))
    return str(path)


def deployment(*containers):
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "web", "namespace": "team-a"},
        "spec": {"template": {"spec": {"containers": list(containers)}}},
    }


@pytest.fixture
def limit_range_file(tmp_path):
    return write_json(tmp_path / "limitrange.json", LIMIT_RANGE)


def test_build_parser_defaults():
    args = cli.build_parser().parse_args(["manifest.json"])

    assert args.namespace == ""
    assert args.dry_run is False
    assert args.default_memory_limit_request_ratio == 1.1
    assert cli.parse_kinds(args.resources) == sorted(cli.SUPPORTED_KINDS)


def test_parse_kinds():
    assert cli.parse_kinds(" Pod, Deployment,,Pod ") == ["Deployment", "Pod"]


def test_mutates_manifest(tmp_path, limit_range_file, capsys):
    manifest = write_json(tmp_path / "deploy.json", deployment(make_container(), make_container("db", request="1Gi")))

    assert cli.main([manifest, "--limit-range", limit_range_file]) == 0

    out = json.loads(capsys.readouterr().out)
    containers = out["spec"]["template"]["spec"]["containers"]
    assert containers[0]["resources"] == {"requests": {"memory": "50Mi"}, "limits": {"memory": "75Mi"}}
    assert containers[1]["resources"] == {"requests": {"memory": "1Gi"}, "limits": {"memory": "1536Mi"}}


def test_dry_run_prints_manifest_unchanged(tmp_path, limit_range_file, capsys):
    obj = deployment(make_container())
    manifest = write_json(tmp_path / "deploy.json", obj)

    assert cli.main([manifest, "--limit-range", limit_range_file, "--dry-run"]) == 0

    assert json.loads(capsys.readouterr().out) == obj


def test_validation_failure_exits_with_error(tmp_path, limit_range_file, capsys):
    manifest = write_json(tmp_path / "deploy.json", deployment(make_container(request="1Gi", limit="2Gi")))

    assert cli.main([manifest, "--limit-range", limit_range_file]) == 1
    assert capsys.readouterr().out == ""


def test_limit_range_without_container_item(tmp_path, capsys):
    limit_range = write_json(tmp_path / "limitrange.json", {"kind": "LimitRange", "spec": {"limits": []}})
    obj = deployment(make_container())
    manifest = write_json(tmp_path / "deploy.json", obj)

    assert cli.main([manifest, "--limit-range", limit_range]) == 0
    assert json.loads(capsys.readouterr().out) == obj


def test_unsupported_kind_exits_with_error(tmp_path, limit_range_file):
    manifest = write_json(tmp_path / "svc.json", {"kind": "Service", "metadata": {"name": "web"}})
    assert cli.main([manifest, "--limit-range", limit_range_file]) == 1


def test_missing_manifest_exits_with_error(tmp_path, limit_range_file):
    assert cli.main([str(tmp_path / "missing.json"), "--limit-range", limit_range_file]) == 1


def test_admission_review(tmp_path, limit_range_file, capsys):
    review = {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": "705ab4f5-6393-11e8-b7cc-42010a800002",
            "kind": {"group": "apps", "version": "v1", "kind": "Deployment"},
            "namespace": "team-a",
            "name": "web",
            "operation": "CREATE",
            "object": deployment(make_container(request="1Gi", limit="2Gi")),
        },
    }
    manifest = write_json(tmp_path / "review.json", review)

    assert cli.main([manifest, "--limit-range", limit_range_file]) == 0

    response = json.loads(capsys.readouterr().out)["response"]
    assert response["uid"] == "705ab4f5-6393-11e8-b7cc-42010a800002"
    assert response["allowed"] is False
    assert "exceeds MaxLimitRequestRatio" in response["status"]["message"]


def test_admission_review_for_disabled_kind(tmp_path, limit_range_file, capsys):
    review = {
        "kind": "AdmissionReview",
        "request": {
            "uid": "1",
            "kind": {"kind": "Deployment"},
            "namespace": "team-a",
            "object": deployment(make_container()),
        },
    }
    manifest = write_json(tmp_path / "review.json", review)

    assert cli.main([manifest, "--limit-range", limit_range_file, "--resources", "Pod,Job"]) == 0
    assert json.loads(capsys.readouterr().out)["response"] == {"uid": "1", "allowed": True}


def test_serve_starts_webhook(limit_range_file, monkeypatch):
    calls = []
    monkeypatch.setattr(cli.webhook, "serve", lambda reviewer, port, certs_dir: calls.append((reviewer, port, certs_dir)))

    code = cli.main([
        "--serve",
        "--limit-range", limit_range_file,
        "--webhook-listen-port", "9443",
        "--webhook-certs-dir", "/tmp/certs",
        "--resources", "Deployment",
    ])

    assert code == 0
    reviewer, port, certs_dir = calls[0]
    assert (port, certs_dir) == (9443, "/tmp/certs")
    assert reviewer.kinds == {"Deployment"}
    assert reviewer.policy_lookup("team-a").default_request == Quantity.parse("50Mi")


def test_webhook_flag_defaults():
    args = cli.build_parser().parse_args(["--serve"])

    assert args.webhook_listen_port == 8443
    assert args.webhook_certs_dir == "/etc/webhook/certs"
    assert args.log_level == "info"


def test_manifest_required_without_serve():
    with pytest.raises(SystemExit):
        cli.main([])
