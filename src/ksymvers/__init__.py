#!/usr/bin/env python3
"""
ksymvers
========

从没有调试信息的linux内核Image中恢复导出符号表（Module.symvers）。

核心模块：
- image_reader: 地址空间、基本类型与字符串读取
- symtab: symsearch数组扫描、校验和符号提取
- types: 常量、配置与结构定义
- utils: 通用工具函数
- main: 命令行主程序
"""

__version__ = "1.0.0"

from .image_reader import AddressSpace, PrimitiveReader, StringDecoder, load_image
from .symtab import (
    DescriptorValidator,
    SymbolRecordDecoder,
    SymbolTableExtractor,
    TableScanner,
    find_symbol_table,
)
from .types import *
from .main import main, extract_symvers

__all__ = [
    'AddressSpace',
    'PrimitiveReader',
    'StringDecoder',
    'SymbolRecordDecoder',
    'DescriptorValidator',
    'TableScanner',
    'SymbolTableExtractor',
    'ScanConfig',
    'SymbolRecord',
    'License',
    'find_symbol_table',
    'load_image',
    'extract_symvers',
    'main',
]
