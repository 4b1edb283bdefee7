"""
Storage contracts used by the orchestrator, plus JSON-file implementations

The JSON stores back the CLI and the tests. Result and job files are written
through a temp file and os.replace, so a save either lands completely or not
at all.
"""
import json
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from config.settings import settings
from models.comment import Comment
from models.job import AnalysisResult, JobProgress, JobStatus
from utils.exceptions import PersistenceError
from utils.logger import get_logger

logger = get_logger(__name__)


# ============================================================
# Contracts
# ============================================================
class CommentStore(ABC):
    @abstractmethod
    def fetch_comments(self, comment_ids: Iterable[str]) -> List[Comment]:
        """Comments with the given ids (unknown ids are skipped)"""

    @abstractmethod
    def fetch_post_comments(self, post_id: str) -> List[Comment]:
        """Every comment of one post"""


class ResultStore(ABC):
    @abstractmethod
    def find_latest(self, post_id: str) -> Optional[AnalysisResult]:
        """Most recent result for a post, or None"""

    @abstractmethod
    def link_to_job(self, result_id: str, job_id: str) -> None:
        """Attach an existing result to another job (cache hit)"""

    @abstractmethod
    def save_analysis(self, result: AnalysisResult) -> None:
        """Persist the whole aggregate; raises PersistenceError and writes nothing on failure"""


class JobStore(ABC):
    @abstractmethod
    def create_job(self, post_id: str, user_id: str) -> str:
        """Create a PENDING job and return its id"""

    @abstractmethod
    def update_progress(self, job_id: str, progress: JobProgress) -> None:
        pass

    @abstractmethod
    def mark_failed(self, job_id: str, message: str) -> None:
        pass

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[Dict]:
        pass


class AccountDirectory(ABC):
    @abstractmethod
    def post_belongs_to(self, post_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    def has_connected_account(self, user_id: str) -> bool:
        pass


# ============================================================
# JSON file implementations
# ============================================================
def _read_json(path: str, default):
    if not os.path.exists(path):
        return default
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def _atomic_write_json(path: str, data) -> None:
    """Write JSON to a temp file in the target directory, then swap it in"""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".tmp_", suffix=".json")
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise


class JsonCommentStore(CommentStore):
    """Comments kept in a single JSON file: {"comments": [...]}"""

    def __init__(self, comments_file: str = None):
        """
        Initialize storage

        Args:
            comments_file: JSON file holding the comments
        """
        self.comments_file = comments_file or settings.COMMENTS_FILE

    def _load(self) -> List[Comment]:
        data = _read_json(self.comments_file, {"comments": []})
        return [Comment.from_dict(c) for c in data.get("comments", [])]

    def fetch_comments(self, comment_ids: Iterable[str]) -> List[Comment]:
        wanted = set(comment_ids)
        return [c for c in self._load() if c.id in wanted]

    def fetch_post_comments(self, post_id: str) -> List[Comment]:
        return [c for c in self._load() if c.post_id == post_id]

    def save_comments(self, comments: List[Comment]) -> int:
        """
        Merge comments into the file (existing ids are kept as they are)

        Returns:
            Number of new comments written
        """
        existing = self._load()
        existing_ids = {c.id for c in existing}
        new_comments = [c for c in comments if c.id not in existing_ids]

        if new_comments:
            all_comments = existing + new_comments
            _atomic_write_json(self.comments_file, {
                "total_comments": len(all_comments),
                "comments": [c.to_dict() for c in all_comments],
            })
            logger.info(f"Saved {len(new_comments)} new comments to {self.comments_file} (total: {len(all_comments)})")
        return len(new_comments)


class JsonResultStore(ResultStore):
    """One file per analysis result: result_<id>.json"""

    def __init__(self, results_dir: str = None):
        self.results_dir = results_dir or settings.RESULTS_DIR
        os.makedirs(self.results_dir, exist_ok=True)

    def _get_filename(self, result_id: str) -> str:
        return os.path.join(self.results_dir, f"result_{result_id}.json")

    def _load_all(self) -> List[AnalysisResult]:
        results = []
        for filename in os.listdir(self.results_dir):
            if filename.startswith('result_') and filename.endswith('.json'):
                with open(os.path.join(self.results_dir, filename), 'r', encoding='utf-8') as f:
                    results.append(AnalysisResult.from_dict(json.load(f)))
        return results

    def get_result(self, result_id: str) -> Optional[AnalysisResult]:
        data = _read_json(self._get_filename(result_id), None)
        return AnalysisResult.from_dict(data) if data else None

    def find_latest(self, post_id: str) -> Optional[AnalysisResult]:
        candidates = [r for r in self._load_all() if r.post_id == post_id]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.analyzed_at)

    def link_to_job(self, result_id: str, job_id: str) -> None:
        result = self.get_result(result_id)
        if result is None:
            raise PersistenceError(f"Result {result_id} not found", {"result_id": result_id})
        result.job_id = job_id
        self.save_analysis(result)

    def save_analysis(self, result: AnalysisResult) -> None:
        filename = self._get_filename(result.id)
        try:
            _atomic_write_json(filename, result.to_dict())
        except Exception as e:
            logger.error(f"Error saving analysis result {result.id} to {filename}: {e}")
            raise PersistenceError("Failed to save analysis results", {"result_id": result.id}) from e
        logger.info(f"Saved analysis result {result.id} for job {result.job_id}")


class JsonJobStore(JobStore):
    """One status file per job: job_<id>.json"""

    def __init__(self, jobs_dir: str = None):
        self.jobs_dir = jobs_dir or settings.JOBS_DIR
        os.makedirs(self.jobs_dir, exist_ok=True)

    def _get_filename(self, job_id: str) -> str:
        return os.path.join(self.jobs_dir, f"job_{job_id}.json")

    def _write(self, job: Dict) -> None:
        job["updated_at"] = datetime.now(timezone.utc).isoformat()
        _atomic_write_json(self._get_filename(job["id"]), job)

    def create_job(self, post_id: str, user_id: str) -> str:
        job_id = uuid.uuid4().hex
        self._write({
            "id": job_id,
            "post_id": post_id,
            "user_id": user_id,
            "status": JobStatus.PENDING.value,
            "progress": 0,
            "current_step": 0,
            "total_steps": 5,
            "step_description": "Queued",
            "error_message": None,
            "created_at": datetime.now(timezone.utc).isoformat(),
        })
        return job_id

    def get_job(self, job_id: str) -> Optional[Dict]:
        return _read_json(self._get_filename(job_id), None)

    def update_progress(self, job_id: str, progress: JobProgress) -> None:
        job = self.get_job(job_id) or {"id": job_id}
        job.update(progress.to_dict())
        self._write(job)

    def mark_failed(self, job_id: str, message: str) -> None:
        job = self.get_job(job_id) or {"id": job_id}
        job["status"] = JobStatus.FAILED.value
        job["error_message"] = message
        self._write(job)


class JsonAccountDirectory(AccountDirectory):
    """
    Post ownership and connected platforms from one JSON file

    Format: {"posts": {post_id: user_id}, "connected_accounts": {user_id: [platform, ...]}}
    """

    def __init__(self, accounts_file: str = None):
        self.accounts_file = accounts_file or settings.ACCOUNTS_FILE

    def _load(self) -> Dict:
        return _read_json(self.accounts_file, {})

    def post_belongs_to(self, post_id: str, user_id: str) -> bool:
        return self._load().get("posts", {}).get(post_id) == user_id

    def has_connected_account(self, user_id: str) -> bool:
        return bool(self._load().get("connected_accounts", {}).get(user_id))
