"""Built-in project-management and codebase tools for the agent."""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, Field

from nerve_agent.agent.registry import ToolRegistry, ToolSpec
from nerve_agent.errors import ToolLookupMiss
from nerve_agent.ingest.pipeline import ContextPipeline
from nerve_agent.store.repository import ProjectStore
from nerve_agent.store.slugs import unique_slug
from nerve_agent.types import SprintDraft, TaskDraft

TaskCategory = Literal[
    "setup", "feature", "integration", "ui", "api", "testing", "documentation"
]

PROJECT_NOT_FOUND = "Project not found"
SPRINT_NOT_FOUND = "Sprint not found"


class ListProjectsInput(BaseModel):
    pass


class GetProjectInput(BaseModel):
    slug: str = Field(min_length=1, description="The project slug")


class TaskInput(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    estimated_hours: float = Field(ge=0)
    category: TaskCategory | None = None


class SprintInput(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    tasks: list[TaskInput] = Field(default_factory=list)


class CreateProjectInput(BaseModel):
    name: str = Field(min_length=1, description="Project name")
    client_name: str = Field(min_length=1, description="Client name")
    description: str | None = Field(default=None, description="Project description")
    sprints: list[SprintInput] = Field(
        default_factory=list, description="Optional sprints, each with optional tasks"
    )


class CreateSprintInput(BaseModel):
    project_slug: str = Field(min_length=1, description="The project slug")
    name: str = Field(min_length=1, description="Sprint name")
    description: str | None = Field(default=None, description="Sprint description")
    estimated_hours: float = Field(ge=0, description="Estimated hours")


class CreateTaskInput(BaseModel):
    project_slug: str = Field(min_length=1, description="The project slug")
    sprint_number: int = Field(ge=1, description="The sprint number")
    title: str = Field(min_length=1, description="Task title")
    description: str | None = Field(default=None, description="Task description")
    estimated_hours: float = Field(ge=0, description="Estimated hours")
    category: TaskCategory | None = Field(default=None, description="Task category")


class CreateNoteInput(BaseModel):
    title: str = Field(min_length=1, description="Note title")
    content: str = Field(min_length=1, description="Note content (markdown)")
    project_slug: str | None = Field(default=None, description="Optional project slug")
    folder: str | None = Field(
        default=None, description="Optional folder name; created if missing"
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Optional tags: idea, task, reference, insight, decision",
    )


class ListNotesInput(BaseModel):
    project_slug: str | None = Field(default=None, description="Optional project slug")


class ReadLocalDirectoryInput(BaseModel):
    path: str = Field(min_length=1, description="Full path to the directory")


def register_builtin_tools(
    registry: ToolRegistry,
    store: ProjectStore,
    *,
    pipeline: ContextPipeline | None = None,
) -> None:
    """Register default tool set used by the agent loop.

    Tools:
    - `list_projects` / `get_project`: caller-scoped project reads.
    - `create_project`: project + sprints + tasks as one transaction.
    - `create_sprint` / `create_task`: chained project -> sprint lookups.
    - `create_note` / `list_notes`: notes, optionally filed under a project
      and folder.
    - `read_local_directory`: budgeted codebase context for a local path.

    Every lookup filters by the caller id; a record owned by someone else
    produces the same "not found" text as a missing one.
    """

    context_pipeline = pipeline or ContextPipeline()

    def _list_projects(_: ListProjectsInput, caller_id: str) -> str:
        projects = store.list_projects(caller_id)
        if not projects:
            return "No projects found"
        return json.dumps(projects, indent=2)

    def _get_project(input_data: GetProjectInput, caller_id: str) -> str:
        project = store.get_project(caller_id, input_data.slug)
        if project is None:
            raise ToolLookupMiss(PROJECT_NOT_FOUND)
        return json.dumps(project, indent=2)

    def _create_project(input_data: CreateProjectInput, caller_id: str) -> str:
        sprints = [
            SprintDraft(
                name=sprint.name,
                description=sprint.description,
                tasks=[
                    TaskDraft(
                        title=task.title,
                        description=task.description,
                        estimated_hours=task.estimated_hours,
                        category=task.category,
                    )
                    for task in sprint.tasks
                ],
            )
            for sprint in input_data.sprints
        ]
        slug = store.create_project_hierarchy(
            user_id=caller_id,
            name=input_data.name,
            client_name=input_data.client_name,
            description=input_data.description,
            sprints=sprints,
        )
        task_count = sum(len(sprint.tasks) for sprint in sprints)
        return (
            f"Project created successfully! Slug: {slug} "
            f"({len(sprints)} sprints, {task_count} tasks)"
        )

    def _create_sprint(input_data: CreateSprintInput, caller_id: str) -> str:
        with store.unit_of_work() as conn:
            project = store.find_project(conn, caller_id, input_data.project_slug)
            if project is None:
                raise ToolLookupMiss(PROJECT_NOT_FOUND)
            number = store.next_sprint_number(conn, project["id"])
            store.insert_sprint(
                conn,
                project_id=project["id"],
                number=number,
                name=input_data.name,
                description=input_data.description,
                estimated_hours=input_data.estimated_hours,
            )
            store.touch_project(conn, project["id"])
        return f'Sprint {number} "{input_data.name}" created successfully'

    def _create_task(input_data: CreateTaskInput, caller_id: str) -> str:
        with store.unit_of_work() as conn:
            project = store.find_project(conn, caller_id, input_data.project_slug)
            if project is None:
                raise ToolLookupMiss(PROJECT_NOT_FOUND)
            sprint = store.find_sprint(conn, project["id"], input_data.sprint_number)
            if sprint is None:
                raise ToolLookupMiss(SPRINT_NOT_FOUND)
            store.insert_task(
                conn,
                sprint_id=sprint["id"],
                position=store.next_task_position(conn, sprint["id"]),
                title=input_data.title,
                description=input_data.description,
                estimated_hours=input_data.estimated_hours,
                category=input_data.category,
            )
            store.touch_project(conn, project["id"])
        return (
            f'Task "{input_data.title}" created successfully '
            f"in Sprint {input_data.sprint_number}"
        )

    def _create_note(input_data: CreateNoteInput, caller_id: str) -> str:
        with store.unit_of_work() as conn:
            project_id = None
            if input_data.project_slug:
                project = store.find_project(conn, caller_id, input_data.project_slug)
                if project is None:
                    raise ToolLookupMiss(PROJECT_NOT_FOUND)
                project_id = project["id"]

            folder_id = None
            if input_data.folder:
                folder = store.find_folder(conn, caller_id, input_data.folder)
                folder_id = (
                    folder["id"]
                    if folder is not None
                    else store.insert_folder(conn, user_id=caller_id, name=input_data.folder)
                )

            slug = unique_slug(
                input_data.title, lambda candidate: store.note_slug_taken(conn, candidate)
            )
            store.insert_note(
                conn,
                user_id=caller_id,
                title=input_data.title,
                slug=slug,
                content=input_data.content,
                tags=input_data.tags,
                project_id=project_id,
                folder_id=folder_id,
            )
        return f"Note created successfully! Slug: {slug}"

    def _list_notes(input_data: ListNotesInput, caller_id: str) -> str:
        project_id = None
        if input_data.project_slug:
            with store.reader() as conn:
                project = store.find_project(conn, caller_id, input_data.project_slug)
            if project is None:
                raise ToolLookupMiss(PROJECT_NOT_FOUND)
            project_id = project["id"]
        notes = store.list_notes(caller_id, project_id)
        if not notes:
            return "No notes found"
        return json.dumps(notes, indent=2)

    def _read_local_directory(input_data: ReadLocalDirectoryInput, _: str) -> str:
        return context_pipeline.build(input_data.path).text

    registry.register(
        ToolSpec(
            name="list_projects",
            description="List all projects for the current user",
            args_schema=ListProjectsInput,
            handler=_list_projects,
            tags=["projects", "read"],
        )
    )
    registry.register(
        ToolSpec(
            name="get_project",
            description="Get details of a specific project including its sprints and tasks",
            args_schema=GetProjectInput,
            handler=_get_project,
            tags=["projects", "read"],
        )
    )
    registry.register(
        ToolSpec(
            name="create_project",
            description="Create a new project with optional sprints and tasks",
            args_schema=CreateProjectInput,
            handler=_create_project,
            tags=["projects", "write"],
        )
    )
    registry.register(
        ToolSpec(
            name="create_sprint",
            description="Create a new sprint in a project",
            args_schema=CreateSprintInput,
            handler=_create_sprint,
            tags=["sprints", "write"],
        )
    )
    registry.register(
        ToolSpec(
            name="create_task",
            description="Create a new task in a sprint",
            args_schema=CreateTaskInput,
            handler=_create_task,
            tags=["tasks", "write"],
        )
    )
    registry.register(
        ToolSpec(
            name="create_note",
            description="Create a note in the user's notes collection",
            args_schema=CreateNoteInput,
            handler=_create_note,
            tags=["notes", "write"],
        )
    )
    registry.register(
        ToolSpec(
            name="list_notes",
            description="List the user's notes, optionally for one project",
            args_schema=ListNotesInput,
            handler=_list_notes,
            tags=["notes", "read"],
        )
    )
    registry.register(
        ToolSpec(
            name="read_local_directory",
            description=(
                "Read and analyze files from a local directory path to understand a codebase"
            ),
            args_schema=ReadLocalDirectoryInput,
            handler=_read_local_directory,
            tags=["filesystem", "read"],
        )
    )
