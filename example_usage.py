#!/usr/bin/env python3
"""
使用示例：通过 /stage 创建任务，再轮询 /status 获取重新布置后的图片
"""

import sys
import time
import requests

BASE_URL = "http://localhost:5000"


def stage_image(image_url, transformation_type="furnish", room_type="living_room", design_style="modern"):
    """创建任务，返回 taskId"""
    payload = {
        "image": image_url,
        "transformation_type": transformation_type,
        "room_type": room_type,
        "design_style": design_style,
        "update_flooring": False,
        "block_decorative": True,
    }
    response = requests.post(f"{BASE_URL}/stage", json=payload, timeout=30)
    result = response.json()
    if response.status_code != 200 or not result.get("success"):
        print(f"❌ 创建任务失败 (HTTP {response.status_code}): {result.get('error', '未知错误')}")
        return None

    print(f"✅ 任务已创建: {result['taskId']}")
    print(f"⏱️  预计耗时: {result['estimatedTime']}")
    return result["taskId"]


def wait_for_result(task_id, interval=2, max_attempts=60):
    """轮询任务状态直到完成、失败或超时"""
    for attempt in range(1, max_attempts + 1):
        time.sleep(interval)
        response = requests.get(f"{BASE_URL}/status", params={"taskId": task_id}, timeout=30)
        result = response.json()

        if result.get("status") == "completed":
            print(f"✅ 第{attempt}次查询: 完成")
            return result["images"]
        if result.get("status") == "failed":
            print(f"❌ 任务失败: {result.get('error')}")
            return None
        if response.status_code != 200:
            print(f"❌ 查询失败 (HTTP {response.status_code}): {result.get('error')}")
            return None
        print(f"⏳ 第{attempt}次查询: 处理中")

    print(f"❌ 等待超时（{max_attempts}次查询）")
    return None


def example_usage():
    # 示例图片URL（请替换为实际的图片URL）
    image_url = "https://images.unsplash.com/photo-1560448204-e02f11c3d0e2?w=800"

    print("=== Room Restaging API 使用示例 ===\n")

    health = requests.get(f"{BASE_URL}/health", timeout=10).json()
    print(f"服务: {health['service']} v{health['version']}")
    print(f"已配置的服务商: {[name for name, ok in health['providers'].items() if ok]}\n")

    task_id = stage_image(image_url, transformation_type="furnish", design_style="scandinavian")
    if not task_id:
        sys.exit(1)

    images = wait_for_result(task_id)
    if images:
        print("\n📸 结果图片（链接很快会过期，请及时保存）:")
        for url in images:
            print(f"   {url}")


if __name__ == "__main__":
    example_usage()
