#!/usr/bin/env python3
"""
ksymvers 安装脚本
================

从linux内核Image中提取符号版本信息（Module.symvers）的工具安装配置。
"""

from setuptools import setup, find_packages
import os

# 读取长描述
def read_long_description():
    here = os.path.abspath(os.path.dirname(__file__))
    try:
        with open(os.path.join(here, 'README.md'), 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        return "ksymvers - 从linux内核Image提取Module.symvers"

setup(
    name="ksymvers",
    version="1.0.0",
    author="ksymvers contributors",
    author_email="",
    description="从linux内核Image中提取导出符号的版本校验值 (Module.symvers)",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",

    # 包配置
    package_dir={"": "src"},
    packages=find_packages(where="src"),

    # 依赖 (仅标准库)
    install_requires=[],

    # 测试依赖
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },

    # Python版本要求
    python_requires=">=3.7",

    # 分类器
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Debuggers",
        "Topic :: Security",
        "Topic :: System :: Operating System Kernels :: Linux",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.7",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
    ],

    # 命令行入口点
    entry_points={
        "console_scripts": [
            "ksymvers=ksymvers.main:main",
        ],
    },

    # 项目关键词
    keywords="linux, kernel, Image, symvers, ksymtab, kcrctab, modversions, reverse engineering",

    # 开发状态
    zip_safe=False,
)
