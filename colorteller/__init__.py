"""colorteller - 返回颜色的诊断服务"""
