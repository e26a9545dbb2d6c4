"""ArtifactStore 单元测试

测试内容：
1. inline payload 存取 + hash/size
2. 大 payload 外置文件存取
3. 按 task / type / document / 时间范围查询
"""

import hashlib
import json
from datetime import timedelta
from pathlib import Path

import pytest
from commentflow.core.models import ArtifactFilters, ArtifactMetadata, ArtifactType
from commentflow.core.store.artifact_store import encode_payload


class TestArtifactStore:
    """SqliteArtifactStore 测试"""

    async def test_inline_store_and_retrieve(self, store_group):
        store = store_group.artifact_store
        data = {"node_ids": ["1:2", "1:3"]}
        metadata = ArtifactMetadata(node_ids=("1:2", "1:3"), document_id="doc-1")

        artifact_id = await store.store("t1", ArtifactType.NODE_IDS, data, metadata)

        artifact = await store.get(artifact_id)
        assert artifact is not None
        assert artifact.task_id == "t1"
        assert artifact.type == ArtifactType.NODE_IDS
        assert artifact.data == data
        assert artifact.metadata.node_ids == ("1:2", "1:3")
        assert artifact.storage_ref is None
        content = encode_payload(data)
        assert artifact.size == len(content)
        assert artifact.hash == hashlib.sha256(content).hexdigest()

    async def test_large_payload_offloaded_to_file(self, store_group, tmp_path: Path):
        store = store_group.artifact_store
        data = {"diff": "x" * 1024}

        artifact_id = await store.store("t1", ArtifactType.DIFF, data)

        artifact = await store.get(artifact_id)
        assert artifact.storage_ref is not None
        file_path = Path(artifact.storage_ref)
        assert file_path == tmp_path / "artifacts" / "t1" / f"{artifact_id}.json"
        assert json.loads(file_path.read_text(encoding="utf-8")) == data
        assert artifact.data == data

    async def test_ids_are_unique(self, store_group):
        store = store_group.artifact_store
        ids = {await store.store("t1", ArtifactType.EXPORT, {"url": "a"}) for _ in range(5)}
        assert len(ids) == 5

    async def test_unknown_artifact(self, store_group):
        assert await store_group.artifact_store.get("missing") is None

    async def test_query_filters(self, store_group):
        store = store_group.artifact_store
        a = await store.store(
            "t1", ArtifactType.EXPORT, {"url": "a"}, ArtifactMetadata(document_id="doc-1")
        )
        b = await store.store(
            "t1", ArtifactType.NODE_IDS, ["1:2"], ArtifactMetadata(document_id="doc-1")
        )
        c = await store.store(
            "t2", ArtifactType.EXPORT, {"url": "c"}, ArtifactMetadata(document_id="doc-2")
        )

        assert [x.artifact_id for x in await store.list_for_task("t1")] == [a, b]
        exports = await store.query(ArtifactFilters(type=ArtifactType.EXPORT))
        assert {x.artifact_id for x in exports} == {a, c}
        doc1_exports = await store.query(
            ArtifactFilters(type=ArtifactType.EXPORT, document_id="doc-1")
        )
        assert [x.artifact_id for x in doc1_exports] == [a]

    async def test_time_range_inclusive(self, store_group):
        store = store_group.artifact_store
        artifact_id = await store.store("t1", ArtifactType.SCREENSHOT, {"png": "..."})
        artifact = await store.get(artifact_id)

        found = await store.query(
            ArtifactFilters(created_after=artifact.created_at, created_before=artifact.created_at)
        )
        assert [x.artifact_id for x in found] == [artifact_id]

    async def test_naive_bounds_read_as_utc(self, store_group):
        store = store_group.artifact_store
        artifact_id = await store.store("t1", ArtifactType.SCREENSHOT, {"png": "..."})
        created = (await store.get(artifact_id)).created_at.replace(tzinfo=None)

        found = await store.query(
            ArtifactFilters(
                created_after=created - timedelta(seconds=1),
                created_before=created + timedelta(seconds=1),
            )
        )
        assert [x.artifact_id for x in found] == [artifact_id]
        later = ArtifactFilters(created_after=created + timedelta(seconds=1))
        assert await store.query(later) == []

    async def test_non_json_payload_rejected(self, store_group):
        with pytest.raises(TypeError):
            await store_group.artifact_store.store("t1", ArtifactType.DIFF, {"bad": object()})
