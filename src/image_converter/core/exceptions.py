"""项目内使用的自定义异常定义。"""


class ImageConverterError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageConverterError):
    """配置不合法时抛出。"""


class IngestionOverflow(ImageConverterError):
    """批次数量超过上限。仅用于提示，不会中断接收。"""

    def __init__(self, limit: int, added: int, rejected: int) -> None:
        super().__init__(f"Limit of {limit} files reached. Only {added} files were added.")
        self.limit = limit
        self.added = added
        self.rejected = rejected


class DecodeError(ImageConverterError):
    """源文件无法解码为像素。"""


class EncodeError(ImageConverterError):
    """编码后端没有产出结果。"""


class BundleError(ImageConverterError):
    """打包时某个产物无法重新读取。"""


class ArtifactReleasedError(ImageConverterError):
    """通过已释放的句柄访问产物。"""


class ArtifactWriteError(ImageConverterError):
    """输出写入失败。"""
