import re
from datetime import datetime

from appliance.maintenance.diagnostics import Check, Section, collect, render_report, write_report


def test_report_on_unconfigured_system(make_host, tmp_path):
    path, sections = write_report(make_host(), None, tmp_path / "out")

    assert re.fullmatch(r"diagnostics-report-\d{8}-\d{6}\.txt", path.name)
    text = path.read_text()
    for title in ("SWAP CONFIGURATION", "FIREWALL CONFIGURATION", "SETUP STATE", "DIAGNOSTIC SUMMARY"):
        assert title in text
    assert "✗ Swap disabled: /var/swap" in text
    assert "✗ UFW enabled" in text
    assert "✗ State ledger present" in text
    assert any(c.ok is False for s in sections for c in s.checks)


def test_report_after_reconcile(settings, reconcile, make_host):
    reconcile(settings)
    sections = {s.title: s for s in collect(make_host(), settings)}

    checks = {c.title: c.ok for s in sections.values() for c in s.checks}
    assert checks["Swap disabled"] is True
    assert checks["config.txt has gpu_mem=384"] is True
    assert checks["UFW enabled"] is True
    assert checks["Required rules present"] is True
    assert checks["Password authentication off"] is True
    assert checks["Configured display count"] is True
    assert checks["Air Player installed"] is True
    assert checks["State ledger present"] is True


def test_render_report_summary():
    sections = [Section("ONE", [Check("good", True), Check("bad", False, "why"), Check("info", None, "x")])]
    text = render_report(sections, generated=datetime(2026, 3, 14, 9, 30), hostname="airplayer")
    assert "Generated: 2026-03-14 09:30:00\nHostname: airplayer\n" in text
    assert "✓ good\n✗ bad: why\n· info: x\n" in text
    assert "2. DIAGNOSTIC SUMMARY" in text
    assert "1 passed, 1 warnings\n✗ bad\n" in text
