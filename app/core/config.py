"""
应用配置模块

使用 pydantic-settings 管理环境变量和应用配置
"""
from functools import lru_cache
from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
import json

# 项目根目录
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """应用配置类"""
    
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # 应用基础配置
    app_name: str = "Screening-Engine-API"
    app_env: str = "development"
    debug: bool = True
    
    # 数据库配置
    database_url: str = f"sqlite+aiosqlite:///{BASE_DIR / 'data' / 'screening.db'}"
    database_echo: bool = False
    
    # CORS 配置
    cors_origins: List[str] = ["*"]
    
    # LLM 配置
    llm_model: str = "deepseek-chat"
    llm_provider: str = "openai-compatible"
    llm_api_key: str = ""
    llm_base_url: str = "https://api.deepseek.com"
    llm_temperature: float = 0.2
    llm_timeout: int = 120
    llm_max_concurrency: int = 5
    llm_rate_limit: int = 60
    # 计费（每千 token 价格），用于节点运行成本统计
    llm_cost_per_1k_input_tokens: float = 0.0
    llm_cost_per_1k_output_tokens: float = 0.0
    
    # 简历筛选引擎配置
    screening_agent_version: str = "1.0.0"
    screening_max_workers: int = 4
    screening_agent_timeout: float = 60.0
    screening_agent_max_retry: int = 2
    screening_agent_retry_delay: float = 0.0
    screening_require_all_dimensions: bool = False
    screening_fail_task_when_all_resumes_fail: bool = False
    screening_max_recommendations: int = 8
    
    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v
    
    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_path(cls, v):
        if isinstance(v, str) and "./data/" in v:
            return v.replace("./data/", str(BASE_DIR / "data") + "/")
        return v
    
    @field_validator("screening_max_workers", "screening_agent_max_retry")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("必须大于等于 1")
        return v
    
    @property
    def is_development(self) -> bool:
        """是否为开发环境"""
        return self.app_env == "development"
    
    @property
    def is_production(self) -> bool:
        """是否为生产环境"""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()


# 全局配置实例
settings = get_settings()
