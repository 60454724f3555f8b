import argparse
import asyncio
import json
import sys
from pathlib import Path

import pandas as pd

from data_insights.agents.qa_agent import QAConfigurationError, QuestionAnsweringAgent
from data_insights.config import get_config
from data_insights.pipeline import InsightPipeline
from data_insights.utils.logging_config import configure_third_party_logging, setup_logging


def format_stats(insights) -> str:
    """Render column statistics as a text table"""
    table = pd.DataFrame([stat.to_dict() for stat in insights.stats])
    return table.to_string(index=False, na_rep="-")


def format_matrix(insights) -> str:
    """Render the correlation matrix as a text table"""
    matrix = insights.matrix
    if len(matrix.columns) < 2:
        return "Not enough numeric columns for a correlation matrix."
    table = pd.DataFrame(matrix.matrix, index=matrix.columns, columns=matrix.columns)
    return table.to_string(float_format=lambda value: f"{value:.3f}", na_rep="null")


def main():
    """Main entry point for the insight pipeline"""
    parser = argparse.ArgumentParser(description="Data Insights")
    parser.add_argument("--data-path", required=True, help="Path to the CSV file")
    parser.add_argument("--question", help="Question to ask about the data")
    parser.add_argument("--project-name", help="Name of the analysis run")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--json", action="store_true", help="Print insights as JSON")
    
    args = parser.parse_args()
    
    config = get_config(args.config)
    config.create_directories()
    
    setup_logging(log_level=args.log_level, log_dir=config.paths.LOGS_DIR, log_to_console=not args.json)
    configure_third_party_logging()
    
    if not Path(args.data_path).exists():
        print(f"Error: Data file not found at {args.data_path}")
        sys.exit(1)
    
    async def run_pipeline():
        pipeline = InsightPipeline(config)
        return await pipeline.run_pipeline(
            data_path=args.data_path,
            project_name=args.project_name
        )
    
    result = asyncio.run(run_pipeline())
    
    if result.get("status") == "failed":
        print(f"❌ Analysis failed: {'; '.join(result.get('errors') or [result.get('error', 'unknown error')])}")
        sys.exit(1)
    
    insights = result["insights"]
    
    if args.json:
        print(json.dumps({"source": result.get("source_info"), **insights.to_dict()}, indent=2))
    else:
        source_info = result.get("source_info") or {}
        print(f"📊 {source_info.get('file_name')}: {source_info.get('row_count')} rows, "
              f"{source_info.get('column_count')} columns")
        print("\nColumn statistics:")
        print(format_stats(insights))
        print("\nCorrelation matrix:")
        print(format_matrix(insights))
    
    if args.question:
        agent = QuestionAnsweringAgent.from_config(config)
        print(f"\n💬 {args.question}\n")
        try:
            for chunk in agent.stream_answer(args.question, result["raw_records"]):
                print(chunk, end="", flush=True)
            print()
        except QAConfigurationError as e:
            print(f"❌ Question answering unavailable: {str(e)}")
            sys.exit(1)


if __name__ == "__main__":
    main()
