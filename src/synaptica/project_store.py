"""File-backed storage for projects and their saved papers."""

import logging
import re
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml  # type: ignore

from .errors import DuplicatePaperError, ProjectNotFoundError, StoreError
from .normalizer import PaperRecord

logger = logging.getLogger(__name__)


class FullTextStatus:
    """Full-text status constants for saved papers."""

    PENDING = "pending"
    FETCHING = "fetching"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Project:
    """A research project that papers are saved into."""

    project_id: str
    name: str
    description: str
    user_id: str
    created_date: str
    papers_file: str

    @property
    def created_datetime(self) -> datetime:
        """Convert created_date string to datetime object."""
        return datetime.strptime(self.created_date, "%Y-%m-%d")


class ProjectStore:
    """Manages projects and the papers saved into each of them."""

    def __init__(self, data_dir: Union[str, Path]):
        """Initialize with path to data directory."""
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.projects_index_file = self.data_dir / "projects_index.yaml"
        self._projects: List[Project] = []
        self._lock = threading.RLock()
        self._load_projects()

    def _load_projects(self) -> None:
        """Load projects from the index file."""
        if not self.projects_index_file.exists():
            # Create empty index if it doesn't exist
            self._save_index()
            return

        with open(self.projects_index_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        self._projects = [
            Project(**project_data) for project_data in data.get("projects", [])
        ]

    def _save_index(self) -> None:
        """Write the projects index file."""
        data: Dict[str, List[Any]] = {
            "projects": [asdict(project) for project in self._projects]
        }
        with open(self.projects_index_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)

    def _papers_path(self, project: Project) -> Path:
        return self.data_dir / project.papers_file

    def _load_papers(self, project: Project) -> List[Dict[str, Any]]:
        path = self._papers_path(project)
        if not path.exists():
            return []

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return list(data.get("papers", []))

    def _save_papers(self, project: Project, papers: List[Dict[str, Any]]) -> None:
        path = self._papers_path(project)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                {"papers": papers},
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )

    def require_project(self, project_id: str, user_id: Optional[str] = None) -> Project:
        """Return a project the user owns, or raise ProjectNotFoundError."""
        project = self.get_project_by_id(project_id)
        if project is None or (user_id is not None and project.user_id != user_id):
            raise ProjectNotFoundError(project_id)
        return project

    def create_project(
        self,
        name: str,
        user_id: str,
        description: str = "",
        project_id: Optional[str] = None,
    ) -> Project:
        """Create and persist a new, empty project."""
        if not name.strip():
            raise ValueError("Project name must not be empty")

        project_id = project_id or re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
        if not project_id:
            raise ValueError(f"Cannot derive a project ID from name '{name}'")

        with self._lock:
            if self.get_project_by_id(project_id):
                raise ValueError(f"Project with ID '{project_id}' already exists")

            project = Project(
                project_id=project_id,
                name=name.strip(),
                description=description,
                user_id=user_id,
                created_date=datetime.now().strftime("%Y-%m-%d"),
                papers_file=f"projects/{project_id}/papers.yaml",
            )
            self._projects.append(project)
            self._save_index()
            self._save_papers(project, [])

        logger.info(f"Created project {project_id} for user {user_id}")
        return project

    def get_all_projects(self, user_id: Optional[str] = None) -> List[Project]:
        """Get all projects, optionally only those owned by a user."""
        if user_id is None:
            return self._projects.copy()
        return [p for p in self._projects if p.user_id == user_id]

    def get_project_by_id(self, project_id: str) -> Optional[Project]:
        """Get a specific project by ID."""
        for project in self._projects:
            if project.project_id == project_id:
                return project
        return None

    def save_paper_to_project(
        self,
        project_id: str,
        record: PaperRecord,
        user_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Save a paper into a project.

        Args:
            project_id: Target project
            record: Normalized paper record
            user_id: Caller; must own the project when given
            tags: Optional tags for the saved paper

        Returns:
            The stored paper entry

        Raises:
            ProjectNotFoundError: If the project is missing or not owned by user_id
            DuplicatePaperError: If the PMID is already saved in the project
        """
        with self._lock:
            project = self.require_project(project_id, user_id)
            papers = self._load_papers(project)

            if any(p.get("pmid") == record.pmid for p in papers):
                raise DuplicatePaperError(record.pmid, project_id)

            entry = record.to_dict()
            entry.update(
                {
                    "paper_id": record.pmid,
                    "tags": list(tags or []),
                    "saved_at": datetime.now().isoformat(),
                    "full_text_status": FullTextStatus.PENDING,
                }
            )
            papers.append(entry)
            self._save_papers(project, papers)

        logger.debug(f"Saved paper {record.pmid} to project {project_id}")
        return entry

    def get_project_papers(
        self, project_id: str, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get every paper saved in a project."""
        with self._lock:
            project = self.require_project(project_id, user_id)
            return self._load_papers(project)

    def get_paper(self, project_id: str, pmid: str) -> Optional[Dict[str, Any]]:
        """Get one saved paper by PMID."""
        for paper in self.get_project_papers(project_id):
            if paper.get("pmid") == pmid:
                return paper
        return None

    def update_paper(self, project_id: str, pmid: str, **fields: Any) -> Dict[str, Any]:
        """Update fields of a saved paper and return the new entry."""
        with self._lock:
            project = self.require_project(project_id)
            papers = self._load_papers(project)

            for paper in papers:
                if paper.get("pmid") == pmid:
                    paper.update(fields)
                    self._save_papers(project, papers)
                    return paper

        raise StoreError(f"Paper {pmid} is not saved in project '{project_id}'")
