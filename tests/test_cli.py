"""End-to-end tests for the command line."""

import json

import pytest

from page_budget.cli import main, parse_args


@pytest.fixture
def page_dir(tmp_path):
    events = [
        {"method": "Network.requestWillBeSent", "params": {
            "requestId": "1", "request": {"url": "https://example.com/"}, "type": "Document"}},
        {"method": "Network.dataReceived", "params": {"requestId": "1", "dataLength": 2048}},
        {"method": "Network.loadingFinished", "params": {"requestId": "1", "encodedDataLength": 1024}},
        {"method": "Network.requestWillBeSent", "params": {
            "requestId": "2", "request": {"url": "https://ads.other.com/ad.js"}, "type": "Script"}},
        {"method": "Network.dataReceived", "params": {"requestId": "2", "dataLength": 300000}},
        {"method": "Network.loadingFinished", "params": {"requestId": "2", "encodedDataLength": 200000}},
        {"method": "Network.requestWillBeSent", "params": {
            "requestId": "3", "request": {"url": "https://example.com/icon.png"}}},
    ]
    (tmp_path / "page.devtoolslog.json").write_text(json.dumps(events))
    (tmp_path / "links.json").write_text(json.dumps([{"rel": "icon", "href": "/icon.png"}]))
    (tmp_path / "budgets.yaml").write_text(
        "- path: /\n"
        "  resourceSizes:\n"
        "    - {resourceType: script, budget: 100}\n"
    )
    return tmp_path


def cli_args(page_dir, *extra):
    return parse_args([
        "--devtools-log", str(page_dir / "page.devtoolslog.json"),
        "--url", "https://example.com/",
        "--links", str(page_dir / "links.json"),
        "--config", str(page_dir / "config.yaml"),
        *extra,
    ])


class TestCli:
    """Tests for the page_budget command line."""

    @pytest.mark.asyncio
    async def test_json_output(self, page_dir, capsys):
        await main(cli_args(page_dir, "--json", "--budgets", str(page_dir / "budgets.yaml")))
        output = json.loads(capsys.readouterr().out)

        summary = output["resourceSummary"]
        assert summary["total"] == {"count": 2, "resourceSize": 302048, "transferSize": 201024}
        assert summary["third-party"]["count"] == 1
        assert summary["other"]["count"] == 0
        assert output["budget"] == [{
            "resourceType": "script",
            "count": 1,
            "transferSize": 200000,
            "sizeOverBudget": 200000 - 100 * 1024,
            "countOverBudget": None,
        }]

    @pytest.mark.asyncio
    async def test_table_output(self, page_dir, capsys):
        await main(cli_args(page_dir))
        out = capsys.readouterr().out
        assert "Third-party" in out
        assert "BUDGET" not in out

    @pytest.mark.asyncio
    async def test_budgets_from_config(self, page_dir, capsys):
        (page_dir / "config.yaml").write_text("summary:\n  budgets_path: budgets.yaml\n")
        await main(cli_args(page_dir))
        assert "BUDGET" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_missing_log_exits(self, page_dir):
        (page_dir / "page.devtoolslog.json").unlink()
        with pytest.raises(SystemExit) as exc:
            await main(cli_args(page_dir))
        assert exc.value.code == 1

    @pytest.mark.asyncio
    async def test_malformed_log_exits(self, page_dir):
        (page_dir / "page.devtoolslog.json").write_text(json.dumps([{"params": {}}]))
        with pytest.raises(SystemExit) as exc:
            await main(cli_args(page_dir))
        assert exc.value.code == 1

    @pytest.mark.asyncio
    async def test_invalid_budget_exits(self, page_dir):
        (page_dir / "budgets.yaml").write_text("- path: nope\n")
        with pytest.raises(SystemExit) as exc:
            await main(cli_args(page_dir, "--budgets", str(page_dir / "budgets.yaml")))
        assert exc.value.code == 1

    @pytest.mark.asyncio
    async def test_invalid_output_format_exits(self, page_dir):
        (page_dir / "config.yaml").write_text("summary:\n  output_format: xml\n")
        with pytest.raises(SystemExit) as exc:
            await main(cli_args(page_dir))
        assert exc.value.code == 1

    @pytest.mark.asyncio
    async def test_malformed_config_exits(self, page_dir):
        (page_dir / "config.yaml").write_text("summary: [unclosed\n")
        with pytest.raises(SystemExit) as exc:
            await main(cli_args(page_dir))
        assert exc.value.code == 1
