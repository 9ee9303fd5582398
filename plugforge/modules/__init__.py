"""
plugforge 基础模块层

包含可复用的基础设施模块：依赖注入、配置、日志。
"""
