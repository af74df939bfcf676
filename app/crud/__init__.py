"""
CRUD 操作模块
"""
from .job_profile import job_profile_crud
from .resume import resume_crud
from .weight_template import weight_template_crud
from .node_run import node_run_crud
from .screening import screening_crud, task_resume_crud, result_crud, run_metric_crud

__all__ = [
    "job_profile_crud",
    "resume_crud",
    "weight_template_crud",
    "node_run_crud",
    "screening_crud",
    "task_resume_crud",
    "result_crud",
    "run_metric_crud",
]
