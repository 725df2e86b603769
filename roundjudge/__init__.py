"""RoundJudge: 评审分数标准化与轮次晋级引擎"""

__version__ = "0.1.0"
