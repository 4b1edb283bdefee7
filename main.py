"""
Main entry point for the application

This is the main file that runs the entire comment analysis pipeline on a
JSON file of comments. Think of it as the "conductor" that orchestrates all
5 steps of the process:
1. Clean comments and filter spam, toxic and duplicate ones
2. Classify the sentiment and emotions of every comment
3. Extract keywords and group comments into themes
4. Write a narrative summary with insights and recommendations
5. Save the result (reused for 24 hours for the same post)

Usage:
    python main.py [comments.json] [--post-id POST] [--user-id USER] [--log-level LEVEL | --debug]
"""
import json
import sys
from typing import List, Optional

from config.settings import settings
from models.comment import Comment
from layer_5_orchestration.orchestrator import PipelineOrchestrator
from layer_5_orchestration.stores import (
    JsonCommentStore,
    JsonResultStore,
    JsonJobStore,
    JsonAccountDirectory,
)
from utils.logger import get_logger, set_log_level

# Set up logging so we can see what's happening
logger = get_logger(__name__)

DEFAULT_USER_ID = "local"


def _flag_value(argv: List[str], *names: str) -> Optional[str]:
    """Value following the first of `names` found in argv"""
    for name in names:
        if name in argv:
            position = argv.index(name)
            if position + 1 < len(argv):
                return argv[position + 1]
    return None


def _positional_args(argv: List[str]) -> List[str]:
    positional = []
    skip_next = False
    for arg in argv:
        if skip_next:
            skip_next = False
            continue
        if arg in ("--post-id", "-p", "--user-id", "-u", "--log-level"):
            skip_next = True
            continue
        if arg.startswith("-"):
            continue
        positional.append(arg)
    return positional


def load_comments(path: str) -> List[Comment]:
    """
    Read comments from a JSON file

    Accepts either a list of comment objects or {"comments": [...]}.
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    items = data.get("comments", []) if isinstance(data, dict) else data
    return [Comment.from_dict(item) for item in items]


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point - This function runs the complete workflow

    If anything goes wrong, it will log the error and stop gracefully.
    """
    argv = sys.argv[1:] if argv is None else argv

    if "--debug" in argv or "-d" in argv:
        set_log_level("DEBUG")
    else:
        set_log_level(_flag_value(argv, "--log-level"))

    try:
        settings.ensure_directories()

        logger.info("=" * 60)
        logger.info("Comment Insights Analyser - Starting")
        logger.info("=" * 60)

        # ============================================================
        # Load comments into the comment store
        # ============================================================
        comment_store = JsonCommentStore()
        positional = _positional_args(argv)
        input_file = positional[0] if positional else settings.COMMENTS_FILE

        comments = load_comments(input_file)
        if not comments:
            logger.error(f"No comments found in {input_file}")
            return 1
        if input_file != comment_store.comments_file:
            comment_store.save_comments(comments)

        post_id = _flag_value(argv, "--post-id", "-p") or comments[0].post_id or "local-post"
        user_id = _flag_value(argv, "--user-id", "-u") or DEFAULT_USER_ID
        comment_ids = [c.id for c in comments if c.post_id in (None, post_id)]

        # ============================================================
        # Create the job and check prerequisites
        # ============================================================
        job_store = JsonJobStore()
        orchestrator = PipelineOrchestrator(
            comment_store=comment_store,
            result_store=JsonResultStore(),
            job_store=job_store,
            account_directory=JsonAccountDirectory(),
        )

        job_id = job_store.create_job(post_id, user_id)
        logger.info(f"Created job {job_id} for post {post_id} ({len(comment_ids)} comments)")

        validation = orchestrator.validate_prerequisites(post_id, user_id)
        for error in validation.errors:
            # Local runs have no account directory to satisfy, so these are warnings only
            logger.warning(f"Prerequisite check: {error}")

        estimate = orchestrator.estimate_analysis_time(len(comment_ids))
        logger.info(f"Estimated analysis time: {estimate:.0f}s")

        # ============================================================
        # Run the pipeline
        # ============================================================
        result = orchestrator.process_analysis(job_id, post_id, user_id, comment_ids)

        logger.info("\n" + "=" * 60)
        logger.info(f"✅ Analysis complete! Result {result.id}")
        logger.info("=" * 60)
        logger.info(f"Comments: {result.total_comments} total, {result.filtered_comments} filtered")
        breakdown = result.sentiment_breakdown
        logger.info(
            f"Sentiment: {breakdown.positive:.0%} positive, {breakdown.negative:.0%} negative, "
            f"{breakdown.neutral:.0%} neutral (confidence {breakdown.confidence_score:.2f})"
        )
        for theme in result.themes:
            logger.info(f"Theme: {theme.name} ({theme.frequency} comments, {theme.sentiment.lower()})")
        logger.info(f"Summary: {result.summary}")

        print(result.to_json())
        return 0  # Return 0 means "success"

    except Exception as e:
        # If something goes wrong, log the error and return 1 (error code)
        logger.error(f"Error in main workflow: {e}", exc_info=True)
        return 1


# This part runs when you execute this file directly (not when imported)
if __name__ == "__main__":
    sys.exit(main())
