"""
Unit tests for CLI functionality.

Runs the vcol commands against a temporary storage directory with the
content API disabled.
"""

import json
import shutil
import tempfile
from pathlib import Path

from click.testing import CliRunner

from verse_collections.cli import main, _sort_key


class TestCommands:
    """Test vcol commands end to end"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.runner = CliRunner()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def invoke(self, *args, input=None):
        return self.runner.invoke(
            main,
            ['--storage-dir', self.temp_dir, '--offline', '--log-level', 'ERROR', *args],
            input=input,
        )

    def export(self):
        result = self.invoke('export')
        assert result.exit_code == 0
        return json.loads(result.stdout)

    def test_help(self):
        result = self.runner.invoke(main, ['--help'])

        assert result.exit_code == 0
        assert 'add' in result.output
        assert 'memorize' in result.output

    def test_empty_folders(self):
        result = self.invoke('folders')

        assert result.exit_code == 0
        assert 'No folders yet' in result.output

    def test_add_and_list(self):
        result = self.invoke('add', '2:255')

        assert result.exit_code == 0
        assert 'Bookmarked 2:255' in result.output

        result = self.invoke('folders')
        assert 'Uncategorized' in result.output
        assert '2:255' in result.output

    def test_add_twice(self):
        self.invoke('add', '1:1')

        result = self.invoke('add', '1:1')

        assert result.exit_code == 0
        assert 'already bookmarked' in result.output

    def test_add_to_missing_folder(self):
        result = self.invoke('add', '1:1', '--folder', 'nope')

        assert result.exit_code == 1
        assert 'not found' in result.output

    def test_create_folder_and_add(self):
        self.invoke('create-folder', 'Study', '--color', 'green')
        folder_id = self.export()['folders']['data'][0]['id']

        result = self.invoke('add', '1:1', '--folder', folder_id)

        assert result.exit_code == 0
        assert "in 'Study'" in result.output

    def test_remove(self):
        self.invoke('add', '1:1')

        assert 'Removed bookmark' in self.invoke('remove', '1:1').output
        assert 'not bookmarked' in self.invoke('remove', '1:1').output

    def test_pin_toggles(self):
        assert 'Pinned 1:1' in self.invoke('pin', '1:1').output
        assert 'Unpinned 1:1' in self.invoke('pin', '1:1').output

    def test_last_read(self):
        result = self.invoke('last-read', '2', '10')
        assert result.exit_code == 0

        result = self.invoke('last-read')
        assert 'Last Read' in result.output
        assert self.export()['lastRead']['data'] == {'2': {'verseNumber': 10, 'verseKey': '2:10', 'verseId': None}}

    def test_last_read_requires_verse_number(self):
        result = self.invoke('last-read', '2')

        assert result.exit_code != 0

    def test_memorize(self):
        result = self.invoke('memorize', '1', '--target', '7', '--progress', '3')

        assert result.exit_code == 0
        assert '3/7' in result.output

    def test_memorize_invalid_target(self):
        result = self.invoke('memorize', '1', '--target', '0')

        assert result.exit_code == 1

    def test_export_import(self):
        self.invoke('add', '1:1')
        self.invoke('pin', '2:255')
        bundle_path = Path(self.temp_dir) / "bundle.json"
        self.invoke('export', '-o', str(bundle_path))
        self.invoke('reset', '--yes')
        assert self.export()['folders']['data'] == []

        result = self.invoke('import', str(bundle_path))

        assert result.exit_code == 0
        exported = self.export()
        assert exported['folders']['data'][0]['bookmarks'][0]['verseId'] == '1:1'
        assert exported['pinned']['data'][0]['verseId'] == '2:255'

    def test_import_invalid_bundle(self):
        bad = Path(self.temp_dir) / "bad.json"
        bad.write_text('{"folders": {"version": "9.0", "data": []}}', encoding='utf-8')

        result = self.invoke('import', str(bad))

        assert result.exit_code == 1
        assert 'Import failed' in result.output

    def test_reset_can_be_aborted(self):
        self.invoke('add', '1:1')

        result = self.invoke('reset', input='n\n')

        assert 'Aborted' in result.output
        assert self.export()['folders']['data'] != []


class TestUtilityFunctions:
    """Test CLI utility functions"""

    def test_sort_key_orders_numbers_numerically(self):
        assert sorted(['10', '2', 'x', '1'], key=_sort_key) == ['1', '2', '10', 'x']
