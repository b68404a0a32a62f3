"""Tests for rakepool.cli — offline commands only (no server, no wallet)."""

import json
from argparse import Namespace

from rakepool.cli import cmd_quote, cmd_space


class TestQuote:
    def test_text_output(self, capsys):
        rc = cmd_quote(Namespace(buy_in=1_000_000, rake_bps=500, creator_pct=70, json=False))
        assert rc == 0
        out = capsys.readouterr().out
        assert "Rake:         50000 (500 bps)" in out
        assert "Creator rake: 35000 (70%)" in out
        assert "Admin rake:   15000 (30%)" in out

    def test_json_output(self, capsys):
        rc = cmd_quote(Namespace(buy_in=1_000_000, rake_bps=500, creator_pct=70, json=True))
        assert rc == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {
            "buy_in": 1_000_000,
            "rake": 50_000,
            "net": 950_000,
            "creator_rake": 35_000,
            "admin_rake": 15_000,
        }

    def test_rejects_high_rake(self):
        assert cmd_quote(Namespace(buy_in=100, rake_bps=1001, creator_pct=70, json=False)) == 1

    def test_rejects_bad_creator_share(self):
        assert cmd_quote(Namespace(buy_in=100, rake_bps=500, creator_pct=101, json=False)) == 1


class TestSpace:
    def test_prints_sizes(self, capsys):
        assert cmd_space(Namespace(max_players=4)) == 0
        out = capsys.readouterr().out
        assert "425 bytes" in out  # 169 + 64 * 4
        assert "AdminConfig: 71 bytes" in out

    def test_rejects_out_of_range(self):
        assert cmd_space(Namespace(max_players=11)) == 1
