"""
Pipeline orchestrator: runs the four analysis layers for one job
"""
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from models.comment import Comment
from models.analysis import SummaryData
from models.job import (
    AnalysisStep,
    JobProgress,
    JobStatus,
    PrerequisiteValidation,
    AnalysisResult,
    SentimentBreakdown,
    EmotionRecord,
    ThemeRecord,
    KeywordRecord,
)
from layer_1_preprocessing.comment_preprocessor import CommentPreprocessor
from layer_2_sentiment.sentiment_analyzer import SentimentAnalyzer
from layer_3_theme_analysis.theme_analyzer import ThemeAnalyzer
from layer_4_summary.summary_generator import SummaryGenerator
from layer_5_orchestration.stores import (
    CommentStore,
    ResultStore,
    JobStore,
    AccountDirectory,
    JsonCommentStore,
    JsonResultStore,
    JsonJobStore,
    JsonAccountDirectory,
)
from utils.cancellation import CancellationToken, check_cancelled
from utils.exceptions import DataError
from config.settings import settings
from utils.logger import get_logger

logger = get_logger(__name__)

ANALYSIS_STEPS = [
    AnalysisStep(name="preprocessing", description="Preprocessing comments and filtering spam", weight=0.20),
    AnalysisStep(name="sentiment", description="Analyzing sentiment and emotions", weight=0.30),
    AnalysisStep(name="themes", description="Extracting themes and keywords", weight=0.30),
    AnalysisStep(name="summary", description="Generating summary and insights", weight=0.15),
    AnalysisStep(name="saving", description="Saving results to database", weight=0.05),
]

BASE_ESTIMATE_SECONDS = 10
SECONDS_PER_COMMENT = 0.1
MAX_ESTIMATE_SECONDS = 300


def estimate_analysis_time(comment_count: int) -> float:
    """Expected run time in seconds: 10s + 0.1s per comment, at most 5 minutes"""
    return min(BASE_ESTIMATE_SECONDS + comment_count * SECONDS_PER_COMMENT, MAX_ESTIMATE_SECONDS)


def cumulative_progress(completed_steps: int) -> int:
    """Progress percentage once the first `completed_steps` steps are done"""
    total_weight = sum(step.weight for step in ANALYSIS_STEPS[:completed_steps])
    return int(round(total_weight * 100))


class PipelineOrchestrator:
    """
    Sequence preprocessing, sentiment, themes, summary and saving for a job

    Each step reports progress to the job store. A recent stored result for
    the same post is reused instead of re-running the pipeline.
    """

    def __init__(
        self,
        comment_store: Optional[CommentStore] = None,
        result_store: Optional[ResultStore] = None,
        job_store: Optional[JobStore] = None,
        account_directory: Optional[AccountDirectory] = None,
        preprocessor: Optional[CommentPreprocessor] = None,
        sentiment_analyzer: Optional[SentimentAnalyzer] = None,
        theme_analyzer: Optional[ThemeAnalyzer] = None,
        summary_generator: Optional[SummaryGenerator] = None
    ):
        self.comment_store = comment_store or JsonCommentStore()
        self.result_store = result_store or JsonResultStore()
        self.job_store = job_store or JsonJobStore()
        self.account_directory = account_directory or JsonAccountDirectory()
        self.preprocessor = preprocessor or CommentPreprocessor()
        self.sentiment_analyzer = sentiment_analyzer or SentimentAnalyzer()
        self.theme_analyzer = theme_analyzer or ThemeAnalyzer()
        self.summary_generator = summary_generator or SummaryGenerator()
        self.cache_ttl = timedelta(hours=settings.CACHE_TTL_HOURS)

    def process_analysis(
        self,
        job_id: str,
        post_id: str,
        user_id: str,
        comment_ids: List[str],
        cancel_token: Optional[CancellationToken] = None
    ) -> AnalysisResult:
        """
        Run the full analysis for one job

        Args:
            job_id: Job whose progress is reported
            post_id: Post the comments belong to (cache key)
            user_id: Owner of the analysis
            comment_ids: Comments to analyse
            cancel_token: Checked before every step

        Returns:
            The saved (or cached) AnalysisResult

        Raises:
            DataError, PersistenceError, AnalysisCancelledError or any step
            error. The job is marked FAILED first and nothing is saved.
        """
        logger.info(f"Starting analysis orchestration for job {job_id}")

        try:
            cached = self._check_existing_analysis(post_id)
            if cached is not None:
                self._handle_cached_result(job_id, cached)
                return cached

            comments = self._fetch_comments(comment_ids)
            if not comments:
                raise DataError("No comments found for analysis", {"job_id": job_id})

            self._report(job_id, JobProgress(
                progress=0,
                current_step=1,
                step_description=ANALYSIS_STEPS[0].description,
            ))

            # Step 1: Preprocessing
            check_cancelled(cancel_token)
            filter_result = self.preprocessor.preprocess_comments(comments)
            valid_comments = filter_result.filtered_comments
            self._complete_step(job_id, 0)

            # Step 2: Sentiment analysis
            check_cancelled(cancel_token)
            sentiment = self.sentiment_analyzer.analyze_batch_sentiment(valid_comments, cancel_token=cancel_token)
            self._complete_step(job_id, 1)

            # Step 3: Themes and keywords
            check_cancelled(cancel_token)
            themes = self.theme_analyzer.analyze_themes(valid_comments, sentiment.results)
            self._complete_step(job_id, 2)

            # Step 4: Summary
            check_cancelled(cancel_token)
            summary_data = SummaryData(
                sentiment_breakdown=sentiment.summary.sentiment_distribution,
                themes=themes.themes,
                keywords=themes.keywords,
                total_comments=len(comments),
                filtered_comments=filter_result.filter_stats.removed,
            )
            summary = self.summary_generator.generate_summary(summary_data)
            self._complete_step(job_id, 3)

            # Step 5: Save results
            check_cancelled(cancel_token)
            result = AnalysisResult(
                job_id=job_id,
                post_id=post_id,
                user_id=user_id,
                total_comments=len(comments),
                filtered_comments=filter_result.filter_stats.removed,
                summary=summary.summary,
                quality_score=summary.quality_score,
                sentiment_breakdown=SentimentBreakdown(
                    positive=sentiment.summary.sentiment_distribution["positive"],
                    negative=sentiment.summary.sentiment_distribution["negative"],
                    neutral=sentiment.summary.sentiment_distribution["neutral"],
                    confidence_score=sentiment.summary.average_confidence,
                ),
                emotions=[EmotionRecord(name=e.name, percentage=e.prevalence) for e in summary.emotions],
                themes=[
                    ThemeRecord(
                        name=t.name,
                        frequency=t.frequency,
                        sentiment=t.sentiment.value,
                        example_comments=[c.text for c in t.representative_comments],
                    )
                    for t in themes.themes
                ],
                keywords=[
                    KeywordRecord(
                        word=k.word,
                        frequency=k.frequency,
                        sentiment=k.sentiment.value,
                        contexts=list(k.contexts),
                    )
                    for k in themes.keywords
                ],
            )
            self.result_store.save_analysis(result)

        except Exception as e:
            logger.error(f"Analysis orchestration failed for job {job_id}: {e}")
            self._mark_failed(job_id, str(e) or type(e).__name__)
            raise

        # The result is committed from here on, so the job must not turn FAILED
        self._report_completed(job_id, "Analysis completed")
        logger.info(f"Analysis orchestration completed for job {job_id}")
        return result

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #
    def _check_existing_analysis(self, post_id: str) -> Optional[AnalysisResult]:
        """Latest result for the post if it is younger than the cache TTL"""
        try:
            existing = self.result_store.find_latest(post_id)
        except Exception as e:
            logger.error(f"Error checking existing analysis for post {post_id}: {e}")
            return None

        if existing is None:
            return None

        age = datetime.now(timezone.utc) - existing.analyzed_at
        if age < self.cache_ttl:
            logger.info(f"Found recent analysis for post {post_id}, using cached result")
            return existing
        return None

    def _handle_cached_result(self, job_id: str, existing: AnalysisResult) -> None:
        self.result_store.link_to_job(existing.id, job_id)
        existing.job_id = job_id
        self._report_completed(job_id, "Used cached analysis result")
        logger.info(f"Used cached analysis result for job {job_id}")

    def _fetch_comments(self, comment_ids: List[str]) -> List[Comment]:
        """Non-filtered comments for the ids, newest first"""
        try:
            comments = self.comment_store.fetch_comments(comment_ids)
        except Exception as e:
            logger.error(f"Error fetching comments: {e}")
            raise DataError("Failed to fetch comments for analysis") from e

        comments = [c for c in comments if not c.is_filtered]
        comments.sort(
            key=lambda c: c.published_at.timestamp() if c.published_at else float("-inf"),
            reverse=True
        )
        return comments

    def _complete_step(self, job_id: str, step_index: int) -> None:
        step = ANALYSIS_STEPS[step_index]
        logger.info(f"Job {job_id}: step {step_index + 1}/{len(ANALYSIS_STEPS)} '{step.name}' done")
        self._report(job_id, JobProgress(
            progress=cumulative_progress(step_index + 1),
            current_step=step_index + 1,
            step_description=step.description,
        ))

    def _report(self, job_id: str, progress: JobProgress) -> None:
        self.job_store.update_progress(job_id, progress)

    def _report_completed(self, job_id: str, description: str) -> None:
        try:
            self._report(job_id, JobProgress(
                progress=100,
                current_step=len(ANALYSIS_STEPS),
                step_description=description,
                status=JobStatus.COMPLETED,
            ))
        except Exception as e:
            logger.error(f"Could not mark job {job_id} as completed: {e}")

    def _mark_failed(self, job_id: str, message: str) -> None:
        try:
            self.job_store.mark_failed(job_id, message)
        except Exception as e:
            logger.error(f"Could not mark job {job_id} as failed: {e}")

    # ------------------------------------------------------------------ #
    # Helpers for callers
    # ------------------------------------------------------------------ #
    def estimate_analysis_time(self, comment_count: int) -> float:
        return estimate_analysis_time(comment_count)

    def validate_prerequisites(self, post_id: str, user_id: str) -> PrerequisiteValidation:
        """
        Check a post can be analysed before creating a job

        Never raises; an internal error is reported as a validation error.
        """
        errors = []
        try:
            if not self.account_directory.post_belongs_to(post_id, user_id):
                errors.append("Post not found or access denied")
            else:
                post_comments = self.comment_store.fetch_post_comments(post_id)
                if not post_comments:
                    errors.append("Post has no comments to analyze")

                valid_comments = [c for c in post_comments if not c.is_filtered]
                if len(valid_comments) < settings.MIN_VALID_COMMENTS:
                    errors.append(
                        f"Post needs at least {settings.MIN_VALID_COMMENTS} valid comments for meaningful analysis"
                    )

            if not self.account_directory.has_connected_account(user_id):
                errors.append("User has no connected social media platforms")

        except Exception as e:
            logger.error(f"Error validating analysis prerequisites: {e}")
            return PrerequisiteValidation(valid=False, errors=["Failed to validate analysis prerequisites"])

        return PrerequisiteValidation(valid=not errors, errors=errors)

    def get_pipeline_status(self) -> Dict[str, Any]:
        return {
            "steps": [asdict(step) for step in ANALYSIS_STEPS],
            "total_steps": len(ANALYSIS_STEPS),
        }
