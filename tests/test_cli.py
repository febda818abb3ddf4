from __future__ import annotations

import json
from pathlib import Path

import pytest

from runestone_codec import cli
from runestone_codec.model import Edict
from runestone_codec.rpc_client import RPCError
from runestone_codec.runestone import Runestone
from runestone_codec.transaction import Transaction

DESCRIPTION = """
claim: 3
default_output: 1
edicts:
  - {id: 8, amount: 20, output: 1}
  - {id: 5, amount: 10, output: 0}
etching:
  divisibility: 2
  rune: 7
  symbol: "$"
  mint:
    limit: 11
"""


@pytest.fixture(autouse=True)
def _no_user_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("runestone_codec.config.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
    for key in ("RUNESTONE_MAGIC", "RUNESTONE_MAX_DIVISIBILITY", "RUNESTONE_MAX_LIMIT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("RUNESTONE_MAX_SCRIPT_ELEMENT_SIZE", raising=False)


class StubRPC:
    def __init__(self, transaction: Transaction | None = None, error: RPCError | None = None) -> None:
        self.transaction = transaction
        self.error = error
        self.requested: list[str] = []

    def get_transaction(self, txid: str) -> Transaction:
        self.requested.append(txid)
        if self.error is not None:
            raise self.error
        assert self.transaction is not None
        return self.transaction


def _expected_runestone() -> Runestone:
    return Runestone.from_dict(
        {
            "claim": 3,
            "default_output": 1,
            "edicts": [{"id": 5, "amount": 10, "output": 0}, {"id": 8, "amount": 20, "output": 1}],
            "etching": {"divisibility": 2, "rune": 7, "symbol": "$", "mint": {"limit": 11}},
        }
    )


def test_encode_prints_script_and_asm(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    description = tmp_path / "rune.yaml"
    description.write_text(DESCRIPTION)

    cli.main(["encode", str(description)])

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == _expected_runestone().encipher().hex()
    assert lines[1].startswith("asm: OP_RETURN 52554e455f54455354 ")


def test_encode_json_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    description = tmp_path / "rune.json"
    description.write_text(json.dumps({"edicts": [{"id": 1, "amount": 2, "output": 0}]}))

    cli.main(["encode", str(description), "--json"])

    output = json.loads(capsys.readouterr().out)
    assert output["payload_hex"] == "00010200"
    assert output["script_hex"].endswith("0400010200")


def test_decode_script_prints_runestone(capsys: pytest.CaptureFixture[str]) -> None:
    script_hex = _expected_runestone().encipher().hex()

    cli.main(["decode", "--script", "0014" + "22" * 20, "--script", script_hex])

    out = capsys.readouterr().out
    assert "burn: no" in out
    assert "claim: 3" in out
    assert "default_output: 1" in out
    assert "  symbol: $" in out
    assert "  mint: deadline=- limit=11 term=-" in out
    assert "edicts: 2" in out


def test_decode_json_with_integers(capsys: pytest.CaptureFixture[str]) -> None:
    script_hex = Runestone(edicts=[Edict(id=5, amount=10, output=0)]).encipher().hex()

    cli.main(["decode", "--script", script_hex, "--json", "--integers"])

    output = json.loads(capsys.readouterr().out)
    assert output["runestone"]["edicts"] == [{"id": 5, "amount": 10, "output": 0}]
    assert output["runestone"]["burn"] is False
    assert output["payload_hex"] == "00050a00"
    assert output["integers"] == [0, 5, 10, 0]


def test_decode_reports_missing_runestone(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["decode", "--script", "6a0568656c6c6f"])

    assert capsys.readouterr().out.strip() == "No runestone found."


def test_decode_reports_malformed_integers(capsys: pytest.CaptureFixture[str]) -> None:
    script_hex = "6a09" + b"RUNE_TEST".hex() + "020280"

    cli.main(["decode", "--script", script_hex, "--integers"])

    out = capsys.readouterr().out
    assert "payload: 0280" in out
    assert "integers: error:" in out
    assert "No runestone found." in out


def test_decode_txid_fetches_from_node(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    runestone = Runestone(claim=42)
    stub = StubRPC(transaction=Transaction.from_scripts([runestone.encipher()]))
    monkeypatch.setattr(cli, "_rpc_from_args", lambda args: stub)

    cli.main(["decode", "--txid", "ab" * 32])

    assert stub.requested == ["ab" * 32]
    assert "claim: 42" in capsys.readouterr().out


def test_decode_txid_error_includes_hint(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    stub = StubRPC(error=RPCError(-5, "No such mempool or blockchain transaction"))
    monkeypatch.setattr(cli, "_rpc_from_args", lambda args: stub)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["decode", "--txid", "ab" * 32])

    assert excinfo.value.code == 1
    assert "Hint:" in capsys.readouterr().err


@pytest.mark.parametrize(
    "argv",
    [
        ["decode", "--script", "zz"],
        ["decode", "--tx-hex", "0200"],
        ["encode", "does-not-exist.yaml"],
    ],
)
def test_errors_exit_with_status_one(argv: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == 1
    assert capsys.readouterr().err.startswith("error: ")


def test_invalid_description_exits(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    description = tmp_path / "bad.yaml"
    description.write_text("edicts:\n  - {id: 1}\n")

    with pytest.raises(SystemExit):
        cli.main(["encode", str(description)])

    assert "missing 'amount'" in capsys.readouterr().err


def test_config_file_changes_magic(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("protocol:\n  magic: RUNE\n")
    description = tmp_path / "rune.yaml"
    description.write_text("claim: 1\n")

    cli.main(["--config", str(config_path), "encode", str(description)])

    script_hex = capsys.readouterr().out.splitlines()[0]
    assert script_hex == "6a04" + b"RUNE".hex() + "020e01"


def test_parser_requires_decode_source() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["decode"])


def test_encode_rejects_divisibility_above_maximum(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    description = tmp_path / "rune.yaml"
    description.write_text("etching:\n  divisibility: 100\n")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["encode", str(description)])

    assert excinfo.value.code == 1
    assert "divisibility 100 exceeds the maximum of 38" in capsys.readouterr().err
