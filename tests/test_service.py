# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""End-to-end tests for the workspace index service."""

import pytest

from victor_index import IndexSettings, WorkspaceIndexService, create_index_service
from victor_index.codebase.embeddings import OllamaEmbeddingModel, OllamaEmbeddingSettings
from victor_index.codebase.models import SymbolKind
from victor_index.config import IndexingConfig, RetrievalConfig


@pytest.fixture
def settings():
    return IndexSettings(
        indexing=IndexingConfig(yield_seconds=0),
        retrieval=RetrievalConfig(min_similarity=0.5),
    )


@pytest.fixture
def project(workspace, write_files, util_ts):
    write_files(
        workspace,
        {
            "src/util.ts": util_ts,
            "src/users.ts": "export class UserRepository {\n  findUser() {}\n}\n",
            "node_modules/dep/index.js": "module.exports = 1;\n",
        },
    )
    return workspace


class TestWorkspaceIndexService:
    """The facade wires indexing, lookups and retrieval."""

    @pytest.mark.asyncio
    async def test_index_and_lookup(self, project, settings, make_model):
        model = make_model(vectors={"UserRepository": [0.0, 1.0, 0.0]})
        service = create_index_service(settings, [project], embedding_model=model)

        report = await service.index_workspace()

        assert report.indexed_files == 2
        add = service.find_symbol_at_position("src/util.ts", 4, 2)
        assert add.name == "add"
        assert service.find_symbol_at_position(project / "src" / "util.ts", 10, 0) is None
        assert service.find_symbol_at_position("src/users.ts", 2, 4).kind == SymbolKind.METHOD
        assert [s.file_path for s in service.find_symbol_by_name("UserRepository")] == [
            "src/users.ts"
        ]

    @pytest.mark.asyncio
    async def test_similarity_and_retrieval(self, project, settings, make_model):
        model = make_model(vectors={"UserRepository": [0.0, 1.0, 0.0], "users": [0.0, 1.0, 0.0]})
        service = create_index_service(settings, [project], embedding_model=model)
        await service.index_workspace()

        similar = service.find_similar_symbols([0.0, 1.0, 0.0], top_n=1, min_similarity=0.9)
        assert len(similar) == 1
        assert similar[0]["path"] == "src/users.ts"
        assert similar[0]["symbol"].name == "UserRepository"
        assert similar[0]["score"] == pytest.approx(1.0)

        context = await service.build_context("where are users stored?")
        assert context.startswith("### File: src/users.ts\n```typescript\n")

        service.set_enabled(False)
        assert await service.build_context("where are users stored?") == ""

    @pytest.mark.asyncio
    async def test_relevant_files_and_removal(self, project, settings):
        service = WorkspaceIndexService([project], settings=settings)
        await service.index_workspace()

        assert [e.path for e in service.find_relevant_files("findUser repository")] == [
            "src/users.ts"
        ]

        assert service.remove_file("src/users.ts")
        assert service.find_relevant_files("findUser") == []

    @pytest.mark.asyncio
    async def test_search_and_get_file(self, project, settings, util_ts):
        service = WorkspaceIndexService([project], settings=settings)
        await service.index_workspace()

        assert [e.path for e in service.search_files("USERREPOSITORY")] == ["src/users.ts"]
        assert service.search_files("no such text") == []
        assert service.get_file("src/util.ts").content == util_ts
        assert service.get_file(project / "src" / "users.ts").path == "src/users.ts"
        assert service.get_file("node_modules/dep/index.js") is None

    @pytest.mark.asyncio
    async def test_setters_validate(self, project, settings):
        service = create_index_service(settings, [project])

        service.set_max_chunks(2)
        service.set_max_chunk_size(100)
        service.set_min_similarity(0.2)
        with pytest.raises(ValueError):
            service.set_min_similarity(7)

        retrieval = service.get_stats()["retrieval"]
        assert retrieval["max_chunks"] == 2
        assert retrieval["max_chunk_size"] == 100
        assert retrieval["min_similarity"] == 0.2

    @pytest.mark.asyncio
    async def test_watching_and_close(self, project, settings, fake_model):
        service = create_index_service(settings, [project], embedding_model=fake_model)

        service.start_watching()
        assert service.is_watching
        assert service.get_stats()["watching"]
        await service.close()

        assert not service.is_watching
        assert fake_model.closed

    @pytest.mark.asyncio
    async def test_watch_setting_starts_watcher_after_first_scan(self, project):
        settings = IndexSettings(indexing=IndexingConfig(yield_seconds=0, watch=True))
        service = create_index_service(settings, [project])
        assert not service.is_watching

        await service.index_workspace()
        assert service.is_watching

        await service.index_workspace()
        assert service.is_watching
        await service.close()
        assert not service.is_watching

    def test_embedding_model_created_from_settings(self, project):
        settings = IndexSettings(embedding=OllamaEmbeddingSettings(model="nomic-embed-text"))
        service = create_index_service(settings, [project])

        assert isinstance(service.embedding_model, OllamaEmbeddingModel)
        assert service.get_stats()["embedding_model"] == "ollama:nomic-embed-text"

    def test_no_embedding_model_by_default(self, project):
        service = create_index_service(None, [project])
        assert service.embedding_model is None
