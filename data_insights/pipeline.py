# data_insights/pipeline.py
import logging
from datetime import datetime
from typing import Dict, List, Optional, TypedDict

from langgraph.graph import END, StateGraph

from data_insights.agents.insight_agent import InsightEngine, InsightGenerationAgent
from data_insights.agents.normalization_agent import ValueNormalizationAgent, normalize_rows
from data_insights.agents.source_agent import RecordSourceAgent
from data_insights.config import Config, get_config
from data_insights.types import InsightResult, NormalizedRow, RawRow
from data_insights.utils.logging_config import PipelineLogger

logger = logging.getLogger(__name__)


class PipelineState(TypedDict, total=False):
    """State shared across all agents"""
    # Input
    data_path: str
    project_name: str
    
    # Records
    raw_records: Optional[List[RawRow]]
    source_info: Optional[dict]
    columns: Optional[List[str]]
    normalized_rows: Optional[List[NormalizedRow]]
    
    # Results
    insights: Optional[InsightResult]
    
    # Workflow
    status: str
    current_step: str
    next_action: str
    errors: List[str]
    execution_log: List[str]


class InsightPipeline:
    def __init__(self, config: Optional[Config] = None):
        """Initialize the insight pipeline"""
        self.config = config or get_config()
        
        self.source_agent = RecordSourceAgent.from_config(self.config)
        self.normalization_agent = ValueNormalizationAgent()
        self.insight_agent = InsightGenerationAgent(self.config.insights.NUMERIC_RATIO_THRESHOLD)
        
        self.graph = self._build_graph()
        self.compiled_graph = self.graph.compile()
        
        logger.info("Insight pipeline initialized successfully")
    
    def _build_graph(self) -> StateGraph:
        """Build the LangGraph workflow"""
        workflow = StateGraph(PipelineState)
        
        workflow.add_node("record_loading", self.source_agent.process)
        workflow.add_node("value_normalization", self.normalization_agent.process)
        workflow.add_node("insight_generation", self.insight_agent.process)
        
        workflow.set_entry_point("record_loading")
        
        # Any stage may stop the run
        workflow.add_conditional_edges(
            "record_loading",
            self._route_after_step,
            {"proceed": "value_normalization", "error": END}
        )
        workflow.add_conditional_edges(
            "value_normalization",
            self._route_after_step,
            {"proceed": "insight_generation", "error": END}
        )
        workflow.add_edge("insight_generation", END)
        
        return workflow
    
    def _route_after_step(self, state: PipelineState) -> str:
        """Route based on the last step's outcome"""
        if state.get("next_action") == "error":
            return "error"
        return "proceed"
    
    async def run_pipeline(self, data_path: str, project_name: Optional[str] = None) -> dict:
        """Execute the complete insight pipeline"""
        
        if project_name is None:
            project_name = f"insights_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        
        initial_state = PipelineState(
            data_path=data_path,
            project_name=project_name,
            status="running",
            current_step="initialization",
            next_action="record_loading",
            errors=[],
            execution_log=[f"Pipeline started at {datetime.now()}"]
        )
        
        try:
            with PipelineLogger(f"insight pipeline '{project_name}'", logger) as step:
                final_state = await self.compiled_graph.ainvoke(initial_state)
                step.log_progress(
                    f"Stopped after {final_state.get('current_step')} "
                    f"with {len(final_state.get('errors') or [])} error(s)"
                )

                if final_state.get("errors") or final_state.get("insights") is None:
                    final_state["status"] = "failed"
                else:
                    final_state["status"] = "completed"
                    step.log_metric("columns", len(final_state["insights"].stats))
                
                final_state["execution_log"].append(
                    f"Pipeline finished at {datetime.now()}"
                )
            
            return final_state
            
        except Exception as e:
            logger.error(f"Pipeline failed for {project_name}: {str(e)}")
            return {
                "status": "failed",
                "error": str(e),
                "errors": [str(e)],
                "project_name": project_name
            }
    
    def analyze_records(self, raw_records: List[RawRow]) -> Dict[str, object]:
        """Normalize already-parsed records and compute their insights"""
        columns, rows = normalize_rows(raw_records)
        engine = InsightEngine(self.config.insights.NUMERIC_RATIO_THRESHOLD)
        return {
            "columns": columns,
            "normalized_rows": rows,
            "insights": engine.compute_insights(rows)
        }


# Example usage
if __name__ == "__main__":
    import asyncio
    
    async def main():
        pipeline = InsightPipeline()
        
        result = await pipeline.run_pipeline(
            data_path="data/sample/sales.csv",
            project_name="sales_insights"
        )
        
        print("Pipeline Result:", result.get("status"), result.get("errors"))
    
    asyncio.run(main())
