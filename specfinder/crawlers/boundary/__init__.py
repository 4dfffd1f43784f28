"""네트워크와 분리된 순수 파싱 로직 (HTML/PDF)"""
