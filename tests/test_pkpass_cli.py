from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

from walletpass.pkpass.archive import read_package, verify_package


def _run_cli(args: list[str], *, env: dict[str, str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    repo_root = Path(__file__).resolve().parents[1]
    src_path = str(repo_root / "src")
    env = dict(env)
    env["PYTHONPATH"] = src_path + (os.pathsep + env["PYTHONPATH"] if env.get("PYTHONPATH") else "")
    return subprocess.run(
        [sys.executable, "-m", "walletpass.pkpass.cli", *args],
        check=False,
        text=True,
        capture_output=True,
        env=env,
        cwd=cwd,
    )


def _write_inputs(tmp_path: Path, key_material) -> Path:
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "logo.png").write_bytes(b"logo")
    (assets / "logo@2x.png").write_bytes(b"logo-2x")
    (assets / "README.txt").write_text("ignored\n", encoding="utf-8")
    (tmp_path / "icon.png").write_bytes(b"icon")

    template = {
        "style": "coupon",
        "fields": {
            "organizationName": "Acme",
            "passTypeIdentifier": key_material.pass_type_identifier,
            "teamIdentifier": "ACME123",
            "coupon": {"primaryFields": [{"key": "offer", "label": "OFF", "value": "20%"}]},
        },
        "images": {"icon": "icon.png"},
    }
    template_path = tmp_path / "template.json"
    template_path.write_text(json.dumps(template), encoding="utf-8")
    (tmp_path / "instance.json").write_text(
        json.dumps({"description": "Demo coupon", "serialNumber": "C 0001"}), encoding="utf-8"
    )
    return template_path


def test_cli_help() -> None:
    proc = _run_cli(["--help"], env=os.environ.copy())
    assert proc.returncode == 0
    assert "Generate a signed wallet pass archive" in proc.stdout


def test_cli_golden_run_creates_pkpass(tmp_path: Path, key_material) -> None:
    template_path = _write_inputs(tmp_path, key_material)
    env = os.environ.copy()
    env["WALLETPASS_KEY_PASSWORD"] = key_material.password
    env["WALLETPASS_KEYS_DIR"] = str(key_material.keys_dir)

    proc = _run_cli(
        [
            "--template",
            str(template_path),
            "--fields",
            str(tmp_path / "instance.json"),
            "--field",
            "logoText=Acme Deals",
            "--images-dir",
            str(tmp_path / "assets"),
            "--verify",
        ],
        env=env,
        cwd=tmp_path,
    )

    assert proc.returncode == 0, proc.stderr
    out_path = tmp_path / proc.stdout.strip().splitlines()[-1]
    assert out_path.name == "C_0001.pkpass"
    assert "verified 4 manifest entries" in proc.stdout

    data = out_path.read_bytes()
    manifest = verify_package(data)
    assert sorted(manifest) == ["icon.png", "logo.png", "logo@2x.png", "pass.json"]

    doc = json.loads(read_package(data)["pass.json"])
    assert doc["logoText"] == "Acme Deals"
    assert doc["coupon"]["primaryFields"][0]["value"] == "20%"
    assert doc["formatVersion"] == 1


def test_cli_reports_validation_error(tmp_path: Path, key_material) -> None:
    template_path = _write_inputs(tmp_path, key_material)
    out_path = tmp_path / "out.pkpass"

    proc = _run_cli(
        ["--template", str(template_path), "--keys-dir", str(key_material.keys_dir), "--out", str(out_path)],
        env=os.environ.copy(),
    )

    assert proc.returncode == 2
    assert "Missing field description" in proc.stderr
    assert not out_path.exists()


def test_cli_reports_signing_error(tmp_path: Path, key_material) -> None:
    template_path = _write_inputs(tmp_path, key_material)
    env = os.environ.copy()
    env["WALLETPASS_KEY_PASSWORD"] = "wrong"
    out_path = tmp_path / "out.pkpass"

    proc = _run_cli(
        [
            "--template",
            str(template_path),
            "--fields",
            str(tmp_path / "instance.json"),
            "--images-dir",
            str(tmp_path / "assets"),
            "--keys-dir",
            str(key_material.keys_dir),
            "--out",
            str(out_path),
        ],
        env=env,
    )

    assert proc.returncode == 2
    assert "error:" in proc.stderr
    assert not out_path.exists()


def test_cli_rejects_invalid_template(tmp_path: Path) -> None:
    template_path = tmp_path / "template.json"
    template_path.write_text(json.dumps({"style": "postcard", "fields": {}}), encoding="utf-8")

    proc = _run_cli(["--template", str(template_path)], env=os.environ.copy())

    assert proc.returncode == 2
    assert "Invalid template document at style" in proc.stderr
