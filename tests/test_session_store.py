import threading

import pytest
import boto3
from unittest.mock import patch
from moto import mock_aws

from wordgroups.errors import ConflictError, StoreError
from wordgroups.models import PlayerStats
from wordgroups.session_manager import SessionManager
from wordgroups.session_store import (
    PLAYER_STATS, PUZZLES, SESSIONS, DynamoRecordStore, LocalRecordStore, WriteOp, get_record_store,
)


@pytest.fixture
def dynamo_store(aws_credentials):
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        store = DynamoRecordStore('wordgroups_test', dynamodb=dynamodb)
        store.ensure_table()
        yield store


@pytest.fixture(params=['local', 'dynamo'])
def any_store(request, store):
    if request.param == 'local':
        return store
    return request.getfixturevalue('dynamo_store')


@pytest.mark.local
def test_local_files_layout(store, tmp_path):
    store.create(SESSIONS, 'abc/1', {'id': 'abc/1'})
    assert (tmp_path / 'game_data' / 'sessions' / 'abc%2F1.json').exists()
    assert store.get(SESSIONS, 'abc/1') == {'id': 'abc/1', 'version': 1}


@pytest.mark.local
def test_local_corrupt_file_raises_store_error(store, tmp_path):
    path = tmp_path / 'game_data' / 'puzzles'
    path.mkdir(parents=True)
    (path / 'broken.json').write_text('{not json')
    with pytest.raises(StoreError):
        store.get(PUZZLES, 'broken')


@pytest.mark.local
def test_local_write_failure_raises_store_error(store):
    with patch('wordgroups.session_store.os.replace', side_effect=OSError("read-only")):
        with pytest.raises(StoreError):
            store.create(PUZZLES, 'p1', {'id': 'p1'})
    assert store.get(PUZZLES, 'p1') is None


def test_create_update_and_versions(any_store):
    created = any_store.create(PUZZLES, 'p1', {'id': 'p1', 'avg_mistakes': 1.5, 'approved': False})
    assert created['version'] == 1
    with pytest.raises(ConflictError):
        any_store.create(PUZZLES, 'p1', {'id': 'p1'})

    updated = any_store.update(PUZZLES, 'p1', {'id': 'p1', 'avg_mistakes': 2.25, 'approved': True}, 1)
    assert updated['version'] == 2
    with pytest.raises(ConflictError):
        any_store.update(PUZZLES, 'p1', {'id': 'p1'}, 1)

    loaded = any_store.get(PUZZLES, 'p1')
    assert loaded == {'id': 'p1', 'avg_mistakes': 2.25, 'approved': True, 'version': 2}
    assert any_store.get(PUZZLES, 'missing') is None


def test_transact_is_all_or_nothing(any_store):
    any_store.create(PUZZLES, 'p1', {'id': 'p1', 'play_count': 0})
    ops = [
        WriteOp(PUZZLES, 'p1', {'id': 'p1', 'play_count': 1}, 1),
        WriteOp(PLAYER_STATS, 'alice', {'username': 'alice', 'total_games': 1}, 7),
    ]
    with pytest.raises(ConflictError):
        any_store.transact(ops)
    assert any_store.get(PUZZLES, 'p1')['play_count'] == 0
    assert any_store.get(PLAYER_STATS, 'alice') is None

    ops[1] = WriteOp(PLAYER_STATS, 'alice', {'username': 'alice', 'total_games': 1})
    written = any_store.transact(ops)
    assert [r['version'] for r in written] == [2, 1]
    assert any_store.get(PUZZLES, 'p1')['play_count'] == 1


@pytest.mark.local
def test_local_transact_restores_records_when_a_write_fails(store):
    store.create(PUZZLES, 'p1', {'id': 'p1', 'play_count': 0})
    real_write = store._write
    calls = []

    def fail_second_write(path, record):
        calls.append(path)
        if len(calls) == 2:
            raise StoreError("disk full")
        real_write(path, record)

    ops = [
        WriteOp(PUZZLES, 'p1', {'id': 'p1', 'play_count': 1}, 1),
        WriteOp(PLAYER_STATS, 'alice', {'username': 'alice', 'total_games': 1}),
    ]
    with patch.object(store, '_write', side_effect=fail_second_write):
        with pytest.raises(StoreError):
            store.transact(ops)
    assert store.get(PUZZLES, 'p1') == {'id': 'p1', 'play_count': 0, 'version': 1}
    assert store.get(PLAYER_STATS, 'alice') is None


@pytest.mark.local
def test_local_stores_sharing_a_directory_serialize_writes(tmp_path):
    first = LocalRecordStore(str(tmp_path / 'shared'))
    second = LocalRecordStore(str(tmp_path / 'shared'))
    first.create(PUZZLES, 'p1', {'id': 'p1', 'play_count': 0})
    results = {}

    def competing_update():
        try:
            second.update(PUZZLES, 'p1', {'id': 'p1', 'play_count': 10}, 1)
            results['second'] = 'written'
        except ConflictError:
            results['second'] = 'conflict'

    competitor = threading.Thread(target=competing_update)
    real_write = first._write

    def write_while_competing(path, record):
        competitor.start()
        competitor.join(timeout=0.5)
        results['blocked'] = competitor.is_alive()
        real_write(path, record)

    with patch.object(first, '_write', side_effect=write_while_competing):
        first.update(PUZZLES, 'p1', {'id': 'p1', 'play_count': 1}, 1)
    competitor.join(timeout=5)

    assert results == {'blocked': True, 'second': 'conflict'}
    assert second.get(PUZZLES, 'p1') == {'id': 'p1', 'play_count': 1, 'version': 2}


def test_scan_and_delete(any_store):
    any_store.create(PUZZLES, 'p1', {'id': 'p1'})
    any_store.create(PUZZLES, 'p2', {'id': 'p2'})
    any_store.create(SESSIONS, 's1', {'id': 's1'})
    assert sorted(r['id'] for r in any_store.scan(PUZZLES)) == ['p1', 'p2']
    any_store.delete(PUZZLES, 'p1')
    assert [r['id'] for r in any_store.scan(PUZZLES)] == ['p2']
    assert any_store.scan('daily_puzzles') == []


@pytest.mark.cloud
def test_dynamo_manager_round_trip(dynamo_store, approved_puzzle):
    manager = SessionManager(dynamo_store)
    puzzle = approved_puzzle.model_copy(update={'version': 0})
    manager.save_puzzle(puzzle)
    loaded = manager.load_puzzle(puzzle.id)
    assert loaded.categories == puzzle.categories
    assert loaded.words == puzzle.words
    assert loaded.version == 1

    stats = PlayerStats(username="Alice", avg_time_seconds=245.5)
    manager.save_player_stats(stats)
    assert manager.load_player_stats("ALICE").avg_time_seconds == 245.5


@pytest.mark.unit
def test_get_record_store_selects_backend(tmp_path):
    with patch.dict('os.environ', {'USE_CLOUD_STORAGE': 'false', 'DATA_DIR': str(tmp_path / 'data')}):
        assert isinstance(get_record_store(), LocalRecordStore)
    with patch.dict('os.environ', {'USE_CLOUD_STORAGE': 'true'}):
        with patch('wordgroups.session_store.DynamoRecordStore') as dynamo:
            assert get_record_store() is dynamo.return_value
