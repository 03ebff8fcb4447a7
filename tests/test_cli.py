import json

import pytest

from breachcheck import cli

CHECKS_DOCUMENT = """
facts:
  composer:
    require:
      php: "^7.4"
checks:
  - name: php-version
    type: yaml
    severity: high
    breach-template:
      templates:
        json: 'php {{ lookup "composer" "require.php" }} in {{ .Breach.Key }}'
      template: '{{ .Breach.Key }}: {{ .Breach.Value | upper }}'
    breaches:
      - breach-type: key-value
        key: composer.json
        value: outdated
  - name: clean-check
    type: file
    breaches: []
""".strip()


def write_document(tmp_path, content=CHECKS_DOCUMENT):
    path = tmp_path / "checks.yml"
    path.write_text(content, encoding="utf-8")
    return path


def test_cli_generates_json_report(tmp_path, capsys):
    config = write_document(tmp_path)
    output_path = tmp_path / "out" / "breaches.json"

    exit_code = cli.main(["--config", str(config), "--format", "json", "--out", str(output_path)])

    captured = capsys.readouterr()
    assert "Check Summary" in captured.out
    assert exit_code == 2
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["summary"]["high"] == 1
    assert data["passed"] is False
    breach = data["results"][0]["breaches"][0]
    assert breach["value"] == "php ^7.4 in composer.json"
    assert breach["check-name"] == "php-version"
    assert data["results"][1]["passed"] is True


def test_cli_prints_pretty_breaches(tmp_path, capsys):
    config = write_document(tmp_path)

    exit_code = cli.main(["--config", str(config)])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "[high] [composer.json] composer.json: OUTDATED" in captured.out
    assert "clean-check (file): PASS" in captured.out


def test_cli_facts_file_overrides_inline_facts(tmp_path, capsys):
    config = write_document(tmp_path)
    facts = tmp_path / "facts.yml"
    facts.write_text("composer:\n  require:\n    php: '^8.3'\n", encoding="utf-8")

    cli.main(["--config", str(config), "--facts", str(facts), "--format", "json"])

    captured = capsys.readouterr()
    assert "php ^8.3 in composer.json" in captured.out


def test_cli_passes_without_breaches(tmp_path, capsys):
    config = write_document(tmp_path, "checks:\n  - name: clean\n    type: file\n")

    exit_code = cli.main(["--config", str(config)])

    captured = capsys.readouterr()
    assert "Status    : PASS" in captured.out
    assert exit_code == 0


def test_cli_normal_severity_exit_code(tmp_path, capsys):
    config = write_document(
        tmp_path,
        "checks:\n  - name: warn\n    breaches:\n      - value: minor\n",
    )

    assert cli.main(["--config", str(config)]) == 1


def test_cli_reports_broken_template_without_failing(tmp_path, capsys):
    config = write_document(
        tmp_path,
        "checks:\n"
        "  - name: broken\n"
        "    severity: low\n"
        "    breach-template:\n"
        "      template: '{{ .Breach.Value | }}'\n"
        "    breaches:\n"
        "      - value: x\n",
    )

    exit_code = cli.main(["--config", str(config)])

    captured = capsys.readouterr()
    assert "[unable to parse breach template]" in captured.out
    assert "{{ .Breach.Value | }}" in captured.out
    assert exit_code == 1


def test_cli_rejects_missing_and_invalid_config(tmp_path):
    with pytest.raises(SystemExit):
        cli.main(["--config", str(tmp_path / "missing.yml")])

    invalid = write_document(tmp_path, "checks:\n  - name: bad\n    breach-template:\n      template: 5\n")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(invalid)])
    assert "breach-template 'template' must be a string" in str(excinfo.value)
