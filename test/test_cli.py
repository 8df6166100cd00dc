from typer.testing import CliRunner

from mac_screen_time.__main__ import app

_LOG_TEXT = """\
Time stamp                Domain              Message
2024-01-15 10:00:00 +0000 Assertions          Summary- [System: PrevIdle] Using AC(Charge: 50)
2024-01-15 10:00:00 +0000 Notification        Display is turned on
2024-01-15 11:30:00 +0000 Notification        Using Batt(Charge: 40) Display is turned off
"""

runner = CliRunner()


def test_summary_from_log_file(tmp_path):
    log_file = tmp_path / "pmset.log"
    log_file.write_text(_LOG_TEXT, encoding="UTF-8")

    result = runner.invoke(app, ["summary", "--log-file", str(log_file)])

    assert 0 == result.exit_code, result.output
    assert "Screen on    1h 30m" in result.output
    assert "Screen drain 6.7%/h" in result.output
    assert "· 50%" in result.output


def test_summary_missing_log_file(tmp_path):
    result = runner.invoke(app, ["summary", "--log-file", str(tmp_path / "missing.log")])
    assert 0 != result.exit_code
