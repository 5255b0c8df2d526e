"""코퍼스 검색 점검 - Markdown 로드 → 임베딩 → 하이브리드 검색 결과 출력."""

import argparse
import asyncio

from rag_agent.cache import EmbeddingCache
from rag_agent.document_loader import load_documents
from rag_agent.embedding import OllamaEmbedder
from rag_agent.ranking import FilterSpec
from rag_agent.retriever import HybridRetriever, RetrievalQuery


async def run_search(source: str | None, query: str, context: str | None,
                     categories: list[str], search_type: str, max_results: int):
    embedder = OllamaEmbedder()
    retriever = HybridRetriever(embedder=embedder, cache=EmbeddingCache())
    try:
        await retriever.initialize(lambda: load_documents(source))

        stats = retriever.get_stats()
        print(f"📂 문서 {stats.document_count}개, 키워드 {stats.keyword_count}개, 카테고리 {stats.categories}")

        results = await retriever.query(RetrievalQuery(
            query=query,
            context=context,
            filters=FilterSpec(categories=categories) if categories else None,
            search_type=search_type,
            max_results=max_results,
        ))
    finally:
        await embedder.aclose()

    if not results:
        print("⚠ 검색 결과가 없습니다.")
        return

    for i, r in enumerate(results, 1):
        print(f"\n[{i}] {r.id} ({r.metadata.category or 'general'}, {r.context_type})")
        print(
            f"    final={r.final_score:.3f} relevance={r.relevance_score:.3f} "
            f"diversity={r.diversity_score:.3f} freshness={r.freshness_score:.3f} context={r.context_score:.3f}"
        )
        print(f"    {r.text[:150]}")


def main():
    parser = argparse.ArgumentParser(description="문서 코퍼스에 하이브리드 검색을 실행합니다.")
    parser.add_argument("query", help="검색 질의")
    parser.add_argument("--source", default=None, help="Markdown 파일이 있는 디렉토리 경로 (기본: AGENT_DOCS_PATH)")
    parser.add_argument("--context", default=None, help="재랭킹에 사용할 대화 맥락")
    parser.add_argument("--category", action="append", default=[], help="카테고리 필터 (여러 번 지정 가능)")
    parser.add_argument("--type", dest="search_type", choices=["hybrid", "semantic", "keyword"], default="hybrid")
    parser.add_argument("--max-results", type=int, default=5)
    args = parser.parse_args()

    asyncio.run(run_search(
        args.source, args.query, args.context, args.category, args.search_type, args.max_results,
    ))


if __name__ == "__main__":
    main()
