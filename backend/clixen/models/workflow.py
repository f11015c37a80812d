"""Workflow and deployment models.

A ``Workflow`` row is the metadata record for one n8n workflow owned by a
user. The n8n JSON is stored verbatim; ``n8n_workflow_id`` is filled in on
first deployment.

status:            draft -> validated -> deployed | failed, or archived
deployment_status: not_deployed -> deploying -> deployed | failed
"""

from sqlalchemy import Column, String, Text, Integer, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class Workflow(Base):
    __tablename__ = "workflows"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), nullable=False, index=True)
    project_id = Column(String(50), ForeignKey("projects.id"), nullable=True, index=True)

    # Name carries the [USR-{user_id}] prefix
    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    original_prompt = Column(Text, nullable=True)
    workflow_json = Column(JSON, nullable=False)
    validation_score = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    status = Column(String(20), nullable=False, default="draft")
    is_active = Column(Boolean, nullable=False, default=True)

    # Deployment
    n8n_workflow_id = Column(String(50), nullable=True, index=True)
    deployment_status = Column(String(20), nullable=False, default="not_deployed")
    deployment_url = Column(Text, nullable=True)
    deployment_error = Column(Text, nullable=True)
    last_deployed_at = Column(DateTime(timezone=True), nullable=True)

    # Execution counters, refreshed by the sync service
    execution_count = Column(Integer, nullable=False, default=0)
    successful_executions = Column(Integer, nullable=False, default=0)
    failed_executions = Column(Integer, nullable=False, default=0)
    last_execution_at = Column(String(50), nullable=True)
    last_execution_status = Column(String(20), nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="workflows")
    deployments = relationship("Deployment", back_populates="workflow", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        """Name without the owner prefix, for the UI."""
        from ..services.isolation import strip_prefix
        return strip_prefix(self.name)


class Deployment(Base):
    """One successful push of a workflow version to n8n.

    status: deployed -> rolled_back
    """

    __tablename__ = "deployments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(50), nullable=False)
    workflow_id = Column(String(50), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False)
    n8n_workflow_id = Column(String(50), nullable=False)
    deployment_version = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="deployed")
    deployment_url = Column(Text, nullable=True)
    activated = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    workflow = relationship("Workflow", back_populates="deployments")
