"""
命令行入口
"""
