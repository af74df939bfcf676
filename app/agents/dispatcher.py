"""
分发器：把岗位画像和简历拆成六个维度的窄输入

纯数据变换，不调用 LLM
"""
from typing import Any, Dict

from app.core.exceptions import InvalidInputException
from app.models.job_profile import JobProfileDetail
from app.models.payloads import (
    TaskMetaData,
    DispatcherOutput,
    BasicInfoData,
    SkillData,
    ResponsibilityData,
    ExperienceData,
    EducationData,
    IndustryData,
)
from app.models.resume import ResumeDetail


def dispatch(task_meta: TaskMetaData, job: JobProfileDetail, resume: ResumeDetail) -> DispatcherOutput:
    """
    构建六个评分 Agent 的输入

    Raises:
        InvalidInputException: 简历与任务不一致，或简历没有任何可评分的数据
    """
    if resume.id != task_meta.resume_id or job.id != task_meta.job_id:
        raise InvalidInputException("简历或岗位与任务元数据不一致")
    if not resume.has_usable_data():
        raise InvalidInputException(f"简历 {resume.id} 没有可用于评分的数据")

    return DispatcherOutput(
        basic_info=BasicInfoData(
            job_name=job.name,
            job_location=job.location,
            salary_min=job.salary_min,
            salary_max=job.salary_max,
            job_description=job.description,
            candidate_name=resume.name,
            current_city=resume.current_city,
            highest_education=resume.highest_education,
            years_experience=resume.years_experience,
        ),
        skill=SkillData(
            job_skills=job.skills,
            resume_skills=resume.skills,
            resume_projects=resume.projects,
            resume_experiences=resume.experiences,
        ),
        responsibility=ResponsibilityData(
            job_responsibilities=job.responsibilities,
            resume_experiences=resume.experiences,
            resume_projects=resume.projects,
        ),
        experience=ExperienceData(
            experience_requirements=job.experience_requirements,
            resume_experiences=resume.experiences,
            years_experience=resume.years_experience,
        ),
        education=EducationData(
            education_requirements=job.education_requirements,
            resume_educations=resume.educations,
            highest_education=resume.highest_education,
        ),
        industry=IndustryData(
            industry_requirements=job.industry_requirements,
            resume_experiences=resume.experiences,
        ),
    )


def dispatch_snapshot(job: JobProfileDetail, resume: ResumeDetail) -> Dict[str, Any]:
    """分发器节点的输入快照"""
    return {
        "job": job.model_dump(mode="json"),
        "resume": resume.model_dump(mode="json"),
    }
