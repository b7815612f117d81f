"""Unit tests for the CLI — command registration and end-to-end behavior
via typer.testing.CliRunner against a temporary ledger."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from nftmarket.cli.app import app
from nftmarket.core.tx_ledger import TxLedger
from nftmarket.marketplace.registry import MarketplaceRegistry

runner = CliRunner()

ALICE = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
BOB = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        # Typer's no_args_is_help may exit with 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("deploy", "mint", "buy", "resell", "cancel", "market", "verify"):
            assert name in result.output

    @pytest.mark.parametrize(
        "command",
        [
            "deploy", "listing-price", "set-listing-price", "mint", "buy",
            "resell", "cancel", "market", "nfts", "listed", "item",
            "history", "verify",
        ],
    )
    def test_command_registered(self, command: str):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: commands against a temporary ledger
# ---------------------------------------------------------------------------


@pytest.fixture
def ledger_db(tmp_path: Path) -> str:
    return str(tmp_path / "cli_ledger.db")


@pytest.fixture
def deployed(ledger_db: str) -> str:
    """Deploy a registry through the CLI and return its address."""
    result = runner.invoke(
        app, ["deploy", "--account", ALICE, "--listing-price", "0.025", "-l", ledger_db]
    )
    assert result.exit_code == 0, result.output
    return result.output.strip().splitlines()[-1].strip()


def _load(ledger_db: str) -> MarketplaceRegistry:
    return MarketplaceRegistry.load(TxLedger(Path(ledger_db)))


class TestCliCommands:
    def test_deploy_prints_address(self, deployed: str, ledger_db: str):
        assert deployed.startswith("0x")
        assert _load(ledger_db).address == deployed

    def test_listing_price(self, deployed: str, ledger_db: str):
        result = runner.invoke(app, ["listing-price", "-l", ledger_db])
        assert result.exit_code == 0
        assert "0.025 ether" in result.output

    def test_mint_and_market(self, deployed: str, ledger_db: str):
        result = runner.invoke(
            app, ["mint", "ipfs://one", "--price", "100", "-a", ALICE, "-l", ledger_db]
        )
        assert result.exit_code == 0, result.output
        assert "create_token" in result.output

        registry = _load(ledger_db)
        assert [i.token_id for i in registry.fetch_market_items()] == [1]
        assert registry.get_item(1).price == 100 * 10**18

        result = runner.invoke(app, ["market", "-l", ledger_db])
        assert result.exit_code == 0
        assert "Market Items" in result.output

    def test_buy_pays_item_price_by_default(self, deployed: str, ledger_db: str):
        runner.invoke(app, ["mint", "ipfs://one", "-p", "1", "-a", ALICE, "-l", ledger_db])
        result = runner.invoke(app, ["buy", "1", "-a", BOB, "-l", ledger_db])
        assert result.exit_code == 0, result.output
        assert _load(ledger_db).owner_of(1) == BOB

    def test_revert_exits_with_reason(self, deployed: str, ledger_db: str):
        runner.invoke(app, ["mint", "ipfs://one", "-p", "1", "-a", ALICE, "-l", ledger_db])
        result = runner.invoke(
            app, ["buy", "1", "--value", "0.5", "-a", BOB, "-l", ledger_db]
        )
        assert result.exit_code == 1
        assert "IncorrectPaymentAmount" in result.output
        assert _load(ledger_db).owner_of(1) != BOB

    def test_zero_price_mint_reverts(self, deployed: str, ledger_db: str):
        result = runner.invoke(
            app, ["mint", "ipfs://one", "-p", "0", "-a", ALICE, "-l", ledger_db]
        )
        assert result.exit_code == 1
        assert "InvalidPrice" in result.output

    def test_resell_and_cancel(self, deployed: str, ledger_db: str):
        runner.invoke(app, ["mint", "ipfs://one", "-p", "1", "-a", ALICE, "-l", ledger_db])
        runner.invoke(app, ["mint", "ipfs://two", "-p", "1", "-a", ALICE, "-l", ledger_db])
        runner.invoke(app, ["buy", "1", "-a", BOB, "-l", ledger_db])

        result = runner.invoke(app, ["resell", "1", "-p", "2", "-a", BOB, "-l", ledger_db])
        assert result.exit_code == 0, result.output
        result = runner.invoke(app, ["cancel", "2", "-a", ALICE, "-l", ledger_db])
        assert result.exit_code == 0, result.output

        registry = _load(ledger_db)
        market = registry.fetch_market_items()
        assert [i.token_id for i in market] == [1]
        assert market[0].price == 2 * 10**18
        assert registry.owner_of(2) == ALICE

    def test_nfts_and_listed(self, deployed: str, ledger_db: str):
        runner.invoke(app, ["mint", "ipfs://one", "-p", "1", "-a", ALICE, "-l", ledger_db])
        runner.invoke(app, ["buy", "1", "-a", BOB, "-l", ledger_db])

        result = runner.invoke(app, ["nfts", "-a", BOB, "-l", ledger_db])
        assert result.exit_code == 0
        assert f"Owned by {BOB}" in result.output

        result = runner.invoke(app, ["listed", "-a", BOB, "-l", ledger_db])
        assert result.exit_code == 0
        assert "no listings" in result.output

    def test_item_unknown(self, deployed: str, ledger_db: str):
        result = runner.invoke(app, ["item", "5", "-l", ledger_db])
        assert result.exit_code == 1
        assert "ItemNotFound" in result.output

    def test_set_listing_price_owner_only(self, deployed: str, ledger_db: str):
        result = runner.invoke(
            app, ["set-listing-price", "1", "-a", BOB, "-l", ledger_db]
        )
        assert result.exit_code == 1
        assert "NotRegistryOwner" in result.output

        result = runner.invoke(
            app, ["set-listing-price", "1", "-a", ALICE, "-l", ledger_db]
        )
        assert result.exit_code == 0
        assert _load(ledger_db).get_listing_price() == 10**18

    def test_history_and_verify(self, deployed: str, ledger_db: str, tmp_path: Path):
        runner.invoke(app, ["mint", "ipfs://one", "-p", "1", "-a", ALICE, "-l", ledger_db])

        result = runner.invoke(app, ["history", "-l", ledger_db])
        assert result.exit_code == 0
        assert f"Transactions on {deployed}" in result.output

        checkpoint = tmp_path / "checkpoint.json"
        result = runner.invoke(
            app, ["verify", "-l", ledger_db, "--export-checkpoint", str(checkpoint)]
        )
        assert result.exit_code == 0
        assert "Chain valid" in result.output
        assert checkpoint.exists()

        runner.invoke(app, ["mint", "ipfs://two", "-p", "1", "-a", ALICE, "-l", ledger_db])
        result = runner.invoke(
            app, ["verify", "-l", ledger_db, "--checkpoint", str(checkpoint)]
        )
        assert result.exit_code == 0, result.output
        assert "State matches checkpoint" in result.output

    def test_verify_rejects_edited_checkpoint(
        self, deployed: str, ledger_db: str, tmp_path: Path
    ):
        checkpoint = tmp_path / "checkpoint.json"
        runner.invoke(
            app, ["verify", "-l", ledger_db, "--export-checkpoint", str(checkpoint)]
        )
        data = json.loads(checkpoint.read_text(encoding="utf-8"))
        data["treasury"] += 1
        checkpoint.write_text(json.dumps(data), encoding="utf-8")

        result = runner.invoke(
            app, ["verify", "-l", ledger_db, "--checkpoint", str(checkpoint)]
        )
        assert result.exit_code == 1
        assert "INVALID" in result.output

    def test_verify_rejects_unreadable_checkpoint(
        self, deployed: str, ledger_db: str, tmp_path: Path
    ):
        checkpoint = tmp_path / "checkpoint.json"
        checkpoint.write_text("{}", encoding="utf-8")
        result = runner.invoke(
            app, ["verify", "-l", ledger_db, "--checkpoint", str(checkpoint)]
        )
        assert result.exit_code == 1
        assert "Unreadable checkpoint" in result.output

    def test_missing_ledger(self, tmp_path: Path):
        result = runner.invoke(app, ["market", "-l", str(tmp_path / "none.db")])
        assert result.exit_code == 1
        assert "Ledger not found" in result.output

    def test_invalid_amount(self, deployed: str, ledger_db: str):
        result = runner.invoke(
            app, ["mint", "ipfs://one", "-p", "abc", "-a", ALICE, "-l", ledger_db]
        )
        assert result.exit_code == 1
        assert "Invalid amount" in result.output
