"""BeautyControl API"""
