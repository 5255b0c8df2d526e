"""에이전트 전역 예외 계층."""


class AgentError(Exception):
    """에이전트 백엔드에서 발생하는 모든 예외의 기반 클래스."""

    code = "AGENT_ERROR"


class RetrieverNotReadyError(AgentError):
    """검색 엔진 초기화가 끝나지 않았거나 실패한 상태에서 질의한 경우.

    "결과 없음"과 "엔진 사용 불가"를 호출자가 구분할 수 있도록
    빈 리스트 대신 이 예외를 던진다.
    """

    code = "RAG_NOT_READY"


class EmbeddingError(AgentError):
    """임베딩 제공자 호출 실패."""

    code = "EMBEDDING_ERROR"


class LLMError(AgentError):
    """LLM 응답 생성 실패."""

    code = "LLM_ERROR"


class PluginError(AgentError):
    """플러그인 실행 실패."""

    code = "PLUGIN_ERROR"


class SessionNotFoundError(AgentError):
    """존재하지 않는 대화 세션."""

    code = "SESSION_NOT_FOUND"
