"""LangGraph workflow assembly for the specification and code stages."""

from langgraph.graph import END, StateGraph

from preview_orchestrator.pipeline.nodes import generate, persist, specify, validate
from preview_orchestrator.pipeline.state import PipelineDeps, PipelineState


def build_graph(deps: PipelineDeps):
    def _should_retry(state: PipelineState) -> str:
        validation = state.get("validation", {})
        if not validation.get("errors") or not state.get("parsed", False):
            return "done"
        if state.get("retry_count", 0) < int(state.get("retry_budget", 1)):
            return "retry"
        return "done"

    async def _specify(state: PipelineState) -> PipelineState:
        return await specify.run(state, deps)

    async def _generate(state: PipelineState) -> PipelineState:
        return await generate.run(state, deps)

    async def _validate(state: PipelineState) -> PipelineState:
        return await validate.run(state, deps)

    async def _persist(state: PipelineState) -> PipelineState:
        return await persist.run(state, deps)

    graph = StateGraph(PipelineState)

    graph.add_node("specify", _specify)
    graph.add_node("generate", _generate)
    graph.add_node("validate", _validate)
    graph.add_node("persist", _persist)

    graph.set_entry_point("specify")
    graph.add_edge("specify", "generate")
    graph.add_edge("generate", "validate")
    graph.add_conditional_edges("validate", _should_retry, {"retry": "generate", "done": "persist"})
    graph.add_edge("persist", END)

    return graph.compile()
