"""
Key-value record store for puzzles, sessions and aggregate stats.

Records are plain JSON-compatible dicts grouped by kind. Every stored record
carries a ``version`` that is bumped on each write; updates are conditional on
the version the caller read, so concurrent writers never silently overwrite
each other. ``transact`` applies several conditional writes as one unit.
"""

import json
import logging
import os
import threading
import urllib.parse
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import boto3
from boto3.dynamodb.conditions import Attr
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError
from filelock import FileLock, Timeout

from . import config
from .errors import ConflictError, StoreError

logger = logging.getLogger(__name__)

PUZZLES = 'puzzles'
SESSIONS = 'sessions'
PLAYER_STATS = 'player_stats'
DAILY_PUZZLES = 'daily_puzzles'
ADMIN_LOGS = 'admin_logs'


class WriteOp(NamedTuple):
    kind: str
    key: str
    record: Dict
    # None means "create": the key must not exist yet
    expected_version: Optional[int] = None


class RecordStore:
    """Interface shared by the local and DynamoDB stores."""

    def get(self, kind: str, key: str) -> Optional[Dict]:
        raise NotImplementedError

    def transact(self, ops: Sequence[WriteOp]) -> List[Dict]:
        raise NotImplementedError

    def delete(self, kind: str, key: str) -> None:
        raise NotImplementedError

    def scan(self, kind: str) -> List[Dict]:
        raise NotImplementedError

    def create(self, kind: str, key: str, record: Dict) -> Dict:
        return self.transact([WriteOp(kind, key, record, None)])[0]

    def update(self, kind: str, key: str, record: Dict, expected_version: int) -> Dict:
        return self.transact([WriteOp(kind, key, record, expected_version)])[0]

    @staticmethod
    def _stamp(op: WriteOp) -> Dict:
        record = dict(op.record)
        record['version'] = (op.expected_version or 0) + 1
        return record


class LocalRecordStore(RecordStore):
    """JSON files under <base_path>/<kind>/<key>.json.

    Writes hold a lock file in the data directory, so stores in other threads
    or processes sharing the directory serialize their check-and-write. A
    transaction that fails part way puts back what it had already written.
    """

    def __init__(self, base_path: Optional[str] = None, lock_timeout: float = 10.0):
        self.base_path = Path(base_path or config.data_dir())
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.base_path / '.lock'))
        self.lock_timeout = lock_timeout

    @contextmanager
    def _exclusive(self):
        with self._lock:
            try:
                self._file_lock.acquire(timeout=self.lock_timeout)
            except Timeout as e:
                raise StoreError(f"Timed out waiting for {self._file_lock.lock_file}") from e
            try:
                yield
            finally:
                self._file_lock.release()

    def _path(self, kind: str, key: str) -> Path:
        return self.base_path / kind / f"{urllib.parse.quote(str(key), safe='')}.json"

    def _read(self, path: Path) -> Optional[Dict]:
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read {path.name}: {e}") from e

    def _write(self, path: Path, record: Dict) -> None:
        tmp_path = path.with_suffix('.json.tmp')
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(record, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreError(f"Failed to write {path.name}: {e}") from e

    def _restore(self, originals: Sequence[Tuple[Path, Optional[Dict]]]) -> None:
        for path, original in reversed(originals):
            try:
                if original is None:
                    path.unlink(missing_ok=True)
                else:
                    self._write(path, original)
            except (OSError, StoreError) as e:
                logger.error(f"Could not restore {path.name} after a failed transaction: {e}")

    def get(self, kind: str, key: str) -> Optional[Dict]:
        with self._lock:
            return self._read(self._path(kind, key))

    def transact(self, ops: Sequence[WriteOp]) -> List[Dict]:
        with self._exclusive():
            originals = []
            for op in ops:
                path = self._path(op.kind, op.key)
                current = self._read(path)
                if op.expected_version is None:
                    if current is not None:
                        raise ConflictError(f"{op.kind}/{op.key} already exists")
                elif current is None or current.get('version') != op.expected_version:
                    raise ConflictError(f"{op.kind}/{op.key} was modified concurrently")
                originals.append((path, current))
            written = []
            try:
                for op, (path, _) in zip(ops, originals):
                    record = self._stamp(op)
                    self._write(path, record)
                    written.append(record)
            except StoreError:
                self._restore(originals[:len(written)])
                raise
            return written

    def delete(self, kind: str, key: str) -> None:
        with self._exclusive():
            try:
                self._path(kind, key).unlink(missing_ok=True)
            except OSError as e:
                raise StoreError(f"Failed to delete {kind}/{key}: {e}") from e

    def scan(self, kind: str) -> List[Dict]:
        kind_dir = self.base_path / kind
        with self._lock:
            if not kind_dir.exists():
                return []
            return [self._read(p) for p in sorted(kind_dir.glob('*.json'))]


def _to_dynamo(record: Dict) -> Dict:
    # DynamoDB rejects floats; round-trip through JSON to turn them into Decimals
    return json.loads(json.dumps(record), parse_float=Decimal)


def _from_dynamo(value):
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


class DynamoRecordStore(RecordStore):
    """All kinds share one table keyed by pk = '<kind>#<key>'."""

    def __init__(self, table_name: Optional[str] = None, region: Optional[str] = None, dynamodb=None):
        self.table_name = table_name or config.dynamodb_table()
        self.dynamodb = dynamodb or boto3.resource('dynamodb', region_name=region or config.aws_region())
        self.table = self.dynamodb.Table(self.table_name)
        self._serializer = TypeSerializer()

    @staticmethod
    def _pk(kind: str, key: str) -> str:
        return f"{kind}#{key}"

    def ensure_table(self) -> None:
        """Create the table if it does not exist (local development and tests)."""
        try:
            self.table.load()
            return
        except ClientError as e:
            if e.response['Error']['Code'] != 'ResourceNotFoundException':
                raise StoreError(f"Failed to describe table {self.table_name}: {e}") from e
        logger.info(f"Creating DynamoDB table {self.table_name}")
        table = self.dynamodb.create_table(
            TableName=self.table_name,
            KeySchema=[{'AttributeName': 'pk', 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': 'pk', 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST',
        )
        table.wait_until_exists()
        self.table = table

    def _item(self, op: WriteOp, record: Dict) -> Dict:
        item = _to_dynamo(record)
        item['pk'] = self._pk(op.kind, op.key)
        item['kind'] = op.kind
        return item

    @staticmethod
    def _strip(item: Dict) -> Dict:
        record = _from_dynamo(item)
        record.pop('pk', None)
        record.pop('kind', None)
        return record

    def get(self, kind: str, key: str) -> Optional[Dict]:
        try:
            response = self.table.get_item(Key={'pk': self._pk(kind, key)}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to load {kind}/{key}: {e}") from e
        item = response.get('Item')
        return self._strip(item) if item else None

    def transact(self, ops: Sequence[WriteOp]) -> List[Dict]:
        records = [self._stamp(op) for op in ops]
        try:
            if len(ops) == 1:
                self._put_single(ops[0], records[0])
            else:
                self._put_many(ops, records)
        except ClientError as e:
            code = e.response['Error']['Code']
            if code in ('ConditionalCheckFailedException', 'TransactionCanceledException',
                        'TransactionConflictException'):
                raise ConflictError(f"Conditional write failed ({code})") from e
            raise StoreError(f"DynamoDB write failed: {e}") from e
        except BotoCoreError as e:
            raise StoreError(f"DynamoDB write failed: {e}") from e
        return records

    def _put_single(self, op: WriteOp, record: Dict) -> None:
        if op.expected_version is None:
            condition = Attr('pk').not_exists()
        else:
            condition = Attr('version').eq(op.expected_version)
        self.table.put_item(Item=self._item(op, record), ConditionExpression=condition)

    def _put_many(self, ops: Sequence[WriteOp], records: List[Dict]) -> None:
        items = []
        for op, record in zip(ops, records):
            put = {
                'TableName': self.table_name,
                'Item': {k: self._serializer.serialize(v) for k, v in self._item(op, record).items()},
            }
            if op.expected_version is None:
                put['ConditionExpression'] = 'attribute_not_exists(pk)'
            else:
                put['ConditionExpression'] = '#v = :expected'
                put['ExpressionAttributeNames'] = {'#v': 'version'}
                put['ExpressionAttributeValues'] = {':expected': {'N': str(op.expected_version)}}
            items.append({'Put': put})
        self.table.meta.client.transact_write_items(TransactItems=items)

    def delete(self, kind: str, key: str) -> None:
        try:
            self.table.delete_item(Key={'pk': self._pk(kind, key)})
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to delete {kind}/{key}: {e}") from e

    def scan(self, kind: str) -> List[Dict]:
        items = []
        kwargs = {'FilterExpression': Attr('kind').eq(kind)}
        try:
            while True:
                response = self.table.scan(**kwargs)
                items.extend(response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to scan {kind}: {e}") from e
        return [self._strip(item) for item in items]


def get_record_store() -> RecordStore:
    if config.use_cloud_storage():
        logger.info(f"Using DynamoDB table '{config.dynamodb_table()}'")
        return DynamoRecordStore()
    logger.info(f"Using local record store at '{config.data_dir()}'")
    return LocalRecordStore()
