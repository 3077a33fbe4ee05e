import json

import pandas as pd
import pytest
from click.testing import CliRunner

from onuprobe.cli import cli
from onuprobe.cli import batch as batch_mod
from onuprobe.cli import lookup as lookup_mod
from onuprobe.models import LookupOutcome, LookupResult, ONUInfo

INVENTORY = "Name,Host,Transport,PwEnv\nOLT1,10.0.0.2,telnet,pw\nOLT2,10.0.0.3,http,pw\n"


def found(endpoint, description):
    info = ONUInfo(onu_id="EPON0/1:1", status="online", mac_address="aa:bb:cc:dd:ee:ff",
                   description=description, rtt=10, port="0/1")
    return LookupResult(endpoint, description, LookupOutcome.FOUND, info=info, rows_examined=1)


@pytest.fixture
def inventory(tmp_path):
    path = tmp_path / "olts.csv"
    path.write_text(INVENTORY, encoding="utf-8")
    return str(path)


@pytest.fixture
def calls(monkeypatch):
    seen = []

    async def fake_find(endpoints, description, **kw):
        seen.append(([e.name for e in endpoints], description))
        if description == "ghost":
            return LookupResult(endpoints[-1].name, description, LookupOutcome.NOT_FOUND)
        return found(endpoints[0].name, description)

    monkeypatch.setattr(lookup_mod, "find_onu", fake_find)
    return seen


class TestLookupCommand:
    def test_found(self, inventory, calls):
        result = CliRunner().invoke(cli, ["--quiet", "lookup", "deirkyeme", "-I", inventory])
        assert result.exit_code == 0
        assert "ONU Status" in result.output
        assert calls == [(["OLT1", "OLT2"], "deirkyeme")]

    def test_not_found_exit_code(self, inventory, calls):
        result = CliRunner().invoke(cli, ["--quiet", "lookup", "ghost", "-I", inventory])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_json(self, inventory, calls):
        result = CliRunner().invoke(cli, ["--quiet", "lookup", "deirkyeme", "-I", inventory,
                                          "--olt", "OLT2", "--json"])
        payload = json.loads(result.output)
        assert payload["outcome"] == "found"
        assert payload["endpoint"] == "OLT2"
        assert payload["info"]["onu_id"] == "EPON0/1:1"

    def test_no_endpoints(self, inventory, calls):
        result = CliRunner().invoke(cli, ["--quiet", "lookup", "x", "-I", inventory, "--olt", "OLT9"])
        assert result.exit_code != 0
        assert "No enabled OLT endpoints" in result.output
        assert calls == []


class TestFromInterface:
    def test_tag_narrows_endpoints(self, inventory, calls):
        result = CliRunner().invoke(cli, ["--quiet", "from-interface",
                                          "(VM-PPPoe4)-vlan1607-zone4-OLT2-saiid", "-I", inventory])
        assert result.exit_code == 0
        assert calls == [(["OLT2"], "saiid")]

    def test_untagged_uses_all(self, inventory, calls):
        CliRunner().invoke(cli, ["--quiet", "from-interface", "vlan10-zone4-saiid", "-I", inventory])
        assert calls == [(["OLT1", "OLT2"], "saiid")]

    def test_no_description(self, inventory, calls):
        result = CliRunner().invoke(cli, ["--quiet", "from-interface", "ether1", "-I", inventory])
        assert result.exit_code != 0
        assert "Cannot derive" in result.output


class TestBatchCommand:
    def test_writes_csv(self, inventory, tmp_path, monkeypatch):
        async def fake_many(endpoints, descriptions, **kw):
            assert kw["concurrency"] == 2
            return [found("OLT1", d) if d != "ghost" else LookupResult("OLT1", d, LookupOutcome.NOT_FOUND)
                    for d in descriptions]

        monkeypatch.setattr(batch_mod, "lookup_many", fake_many)
        descs = tmp_path / "descs.txt"
        descs.write_text("# support queue\ndeirkyeme\n\nghost\nmounir\n", encoding="utf-8")
        out = tmp_path / "out.csv"

        result = CliRunner().invoke(cli, ["--quiet", "batch", str(descs), "-I", inventory,
                                          "-c", "2", "-o", str(out), "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "2/3 found" in result.output
        df = pd.read_csv(out)
        assert df["Description"].tolist() == ["deirkyeme", "ghost", "mounir"]
        assert df["Outcome"].tolist() == ["found", "not_found", "found"]

    def test_empty_file(self, inventory, tmp_path):
        descs = tmp_path / "descs.txt"
        descs.write_text("\n# nothing\n", encoding="utf-8")
        result = CliRunner().invoke(cli, ["--quiet", "batch", str(descs), "-I", inventory])
        assert result.exit_code != 0
        assert "No descriptions" in result.output
