"""
Integration tests for the administrative CLI.
"""

import pytest

from api.cli import main


class TestCli:
    def test_init_db(self, capsys):
        main(["init-db"])
        assert "Database initialized successfully." in capsys.readouterr().out

    def test_start_and_list_voyages(self, capsys):
        main(["start-voyage", "--name", "Cli Passage"])
        assert "Cli Passage" in capsys.readouterr().out

        main(["list-voyages"])
        out = capsys.readouterr().out
        assert "VOYAGES" in out
        assert "Cli Passage" in out

    def test_start_voyage_bad_name(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["start-voyage", "--name", "   "])
        assert exc.value.code == 1
        assert "Error:" in capsys.readouterr().out

    def test_backfill(self, capsys):
        main(["backfill"])
        assert "Assigned a voyage to" in capsys.readouterr().out

    def test_no_command(self):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1
