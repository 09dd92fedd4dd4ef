"""项目内使用的自定义异常定义。"""


class AssetOptimizerError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(AssetOptimizerError):
    """配置不合法时抛出。"""


class AssetReadError(AssetOptimizerError, OSError):
    """资源文件无法读取（不存在或无权限）。"""


class ManifestError(AssetOptimizerError):
    """优化记录文件无法创建、解析或写入。"""


class RecompressionError(AssetOptimizerError):
    """外部重压缩操作失败。"""
