"""DeskBridge - 知识库与外部帮助中心的文章同步引擎."""

__version__ = "0.1.0"
