# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
import io
import json
import re
import sys
from pathlib import Path

from cli.analyze_harness import run

SOURCE = "\n".join(
    [
        "int ok(void) {",
        "  return 0;",
        "}",
        "",
        "void copy(char *dst, const char *src) {",
        "  /* no bounds check */",
        "  strcpy(dst, src);",
        "}",
    ]
)

LOCAL_SCRIPT = """
import json
import sys

mode = sys.argv[1]
functions = json.loads(sys.stdin.readline())
if mode == "line":
    payload = {
        "batch_vul_pred": [1 if "strcpy" in f else 0 for f in functions],
        "batch_line_scores": [
            [0.9 if "strcpy" in line else 0.1 for line in f.split("\\n")]
            for f in functions
        ],
    }
elif mode == "cwe":
    payload = {
        "cwe_id": ["CWE-787"] * len(functions),
        "cwe_id_prob": [0.9] * len(functions),
        "cwe_type": ["Base"] * len(functions),
        "cwe_type_prob": [0.8] * len(functions),
    }
else:
    payload = {
        "batch_sev_score": [8.1] * len(functions),
        "batch_sev_class": ["High"] * len(functions),
    }
print(json.dumps(payload))
"""


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


def _project(tmp_path: Path, taxonomy_path: Path) -> list[str]:
    source = tmp_path / "copy.c"
    symbols = tmp_path / "symbols.json"
    settings = tmp_path / "settings.json"
    script = tmp_path / "res" / "local.py"
    _write_file(source, SOURCE)
    _write_file(
        symbols,
        json.dumps(
            [
                {"kind": "function", "start_line": 0, "end_line": 2, "name": "ok"},
                {"kind": "function", "start_line": 4, "end_line": 7, "name": "copy"},
            ]
        ),
    )
    _write_file(script, LOCAL_SCRIPT)
    _write_file(
        settings,
        json.dumps(
            {
                "inferenceMode": "local",
                "pythonExecutable": sys.executable,
                "localScript": str(script),
                "showDescription": False,
            }
        ),
    )
    return [
        "analyze",
        "--file",
        str(source),
        "--symbols",
        str(symbols),
        "--settings",
        str(settings),
        "--taxonomy",
        str(taxonomy_path),
    ]


def test_cli_001_analyze_json_reports_diagnostic_on_vulnerable_line(
    tmp_path: Path, taxonomy_path: Path
) -> None:
    stdout = io.StringIO()
    stderr = io.StringIO()

    exit_code = run(
        _project(tmp_path, taxonomy_path) + ["--format", "json"],
        stdout=stdout,
        stderr=stderr,
    )

    assert exit_code == 0
    payload = json.loads(_strip_ansi(stdout.getvalue()))
    assert len(payload["diagnostics"]) == 1
    diagnostic = payload["diagnostics"][0]
    assert diagnostic["range"]["start"]["line"] == 6
    assert "CWE-787" in diagnostic["message"]
    assert "Out-of-bounds Write" in diagnostic["message"]
    assert payload["stages"][-1] == "analysis_end"


def test_cli_002_analyze_table_output(tmp_path: Path, taxonomy_path: Path) -> None:
    stdout = io.StringIO()
    stderr = io.StringIO()

    exit_code = run(
        _project(tmp_path, taxonomy_path) + ["--format", "table"],
        stdout=stdout,
        stderr=stderr,
    )

    assert exit_code == 0
    compact_text = re.sub(r"[^a-zA-Z0-9_:.()-]+", "", _strip_ansi(stdout.getvalue()))
    assert "High" in compact_text
    assert "message" in compact_text


def test_cli_003_analyze_json_writes_to_output_file(
    tmp_path: Path, taxonomy_path: Path
) -> None:
    output_path = tmp_path / "out" / "result.json"
    stdout = io.StringIO()
    stderr = io.StringIO()

    exit_code = run(
        _project(tmp_path, taxonomy_path)
        + ["--format", "json", "--output", str(output_path)],
        stdout=stdout,
        stderr=stderr,
    )

    assert exit_code == 0
    assert stdout.getvalue() == ""
    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert payload["diagnostics"][0]["code"] == "CWE-787"


def test_cli_004_missing_source_file_is_usage_error(tmp_path: Path) -> None:
    stderr = io.StringIO()

    exit_code = run(
        ["analyze", "--file", str(tmp_path / "nope.c"), "--symbols", "s.json"],
        stdout=io.StringIO(),
        stderr=stderr,
    )

    assert exit_code == 2
    assert "Path does not exist" in stderr.getvalue()


def test_cli_005_invalid_settings_is_usage_error(tmp_path: Path, taxonomy_path: Path) -> None:
    argv = _project(tmp_path, taxonomy_path)
    _write_file(tmp_path / "settings.json", json.dumps({"maxLines": 0}))
    stderr = io.StringIO()

    exit_code = run(argv, stdout=io.StringIO(), stderr=stderr)

    assert exit_code == 2
    assert "Invalid settings" in stderr.getvalue()


def test_cli_006_inference_failure_exits_one(tmp_path: Path, taxonomy_path: Path) -> None:
    argv = _project(tmp_path, taxonomy_path)
    _write_file(tmp_path / "res" / "local.py", "import sys\nsys.exit(1)\n")
    stderr = io.StringIO()

    exit_code = run(argv, stdout=io.StringIO(), stderr=stderr)

    assert exit_code == 1
    assert "Analysis failed" in stderr.getvalue()


def test_cli_007_unknown_command_is_usage_error() -> None:
    assert run(["scan"], stdout=io.StringIO(), stderr=io.StringIO()) == 2
