"""基础设施：配置、轮次锁与评分计算"""
