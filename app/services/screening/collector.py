"""
结果汇总：任务级运行指标与排名
"""
from typing import Dict

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import node_run_crud, result_crud, run_metric_crud, task_resume_crud
from app.models.screening import MatchLevel, ScreeningRunMetric


class ResultCollector:
    """根据已落库的结果与节点运行重新计算汇总数据"""

    async def refresh_metrics(self, db: AsyncSession, task_id: str) -> ScreeningRunMetric:
        """重算平均分、匹配等级分布和 token/成本合计"""
        results = await result_crud.ranked_for_task(db, task_id)
        histogram = {level.value: 0 for level in MatchLevel}
        for result in results:
            histogram[result.match_level] = histogram.get(result.match_level, 0) + 1

        avg_score = 0.0
        if results:
            avg_score = round(sum(r.overall_score for r in results) / len(results), 2)

        tokens_input, tokens_output, total_cost = await node_run_crud.usage_totals(db, task_id)
        return await run_metric_crud.upsert(db, task_id, {
            "avg_score": avg_score,
            "histogram": histogram,
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "total_cost": total_cost,
        })

    async def apply_rankings(self, db: AsyncSession, task_id: str) -> Dict[str, int]:
        """
        按综合分降序写入排名，1 为最佳

        返回 task_resume_id -> 名次
        """
        results = await result_crud.ranked_for_task(db, task_id)
        rankings = {result.task_resume_id: index for index, result in enumerate(results, start=1)}
        await task_resume_crud.set_rankings(db, rankings)
        logger.info("任务 {} 排名完成: {} 份简历", task_id, len(rankings))
        return rankings
