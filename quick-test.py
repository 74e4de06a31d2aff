# Tests rápidos contra una tienda corriendo
# Uso: python quick-test.py [local|prod]

import os
import sys

import requests

API_KEY = os.getenv("BACKOFFICE_API_KEY", "")


def storefront_tests(base_url):
    return [
        {"name": "Health Check", "url": f"{base_url}/healthz", "expected_status": 200},
        {"name": "Catálogo", "url": f"{base_url}/api/products", "expected_status": 200},
        {"name": "Destacados", "url": f"{base_url}/api/products/featured", "expected_status": 200},
        {"name": "Categorías", "url": f"{base_url}/api/categories", "expected_status": 200},
        {"name": "Carrito invitado", "url": f"{base_url}/api/cart", "expected_status": 200},
        {"name": "Idioma", "url": f"{base_url}/api/language", "expected_status": 200},
        {
            "name": "Órdenes sin login (debe devolver 401)",
            "url": f"{base_url}/api/orders",
            "expected_status": 401,
        },
        {
            "name": "Producto inexistente (debe devolver 404)",
            "url": f"{base_url}/api/products/no-existe",
            "expected_status": 404,
        },
    ]


def backoffice_tests(base_url):
    headers = {"x-api-key": API_KEY}
    return [
        {"name": "Admin login", "url": f"{base_url}/admin/login", "expected_status": 200},
        {"name": "Backoffice API - Products", "url": f"{base_url}/products", "headers": headers, "expected_status": 200},
        {"name": "Backoffice API - Orders", "url": f"{base_url}/orders", "headers": headers, "expected_status": 200},
        {"name": "Backoffice API - Stats", "url": f"{base_url}/stats", "headers": headers, "expected_status": 200},
        {"name": "Backoffice API sin key (debe devolver 401)", "url": f"{base_url}/products", "expected_status": 401},
    ]


def test_local():
    """Tests para ambiente local"""
    print("🧪 Testing ambiente LOCAL...\n")
    base_url = os.getenv("VALMORE_LOCAL_URL", "http://localhost:8080")
    return run_tests(storefront_tests(base_url) + backoffice_tests(base_url))


def test_prod():
    """Tests para ambiente de producción"""
    print("🧪 Testing ambiente PRODUCCIÓN...\n")
    base_url = os.getenv("VALMORE_PROD_URL", "")
    if not base_url:
        print("❌ Definí VALMORE_PROD_URL")
        return False
    return run_tests(storefront_tests(base_url) + backoffice_tests(base_url))


def run_tests(tests):
    """Ejecuta una lista de tests"""
    passed = 0
    failed = 0
    # Una sola sesión para conservar la cookie del invitado
    session = requests.Session()

    for test in tests:
        try:
            print(f"Testing: {test['name']}...")

            method = test.get("method", "GET")
            headers = test.get("headers", {})
            data = test.get("data")

            if method == "GET":
                response = session.get(test["url"], headers=headers, timeout=10)
            else:
                response = session.post(test["url"], headers=headers, json=data, timeout=10)

            expected = test.get("expected_status", 200)

            if response.status_code == expected:
                print(f"  ✅ PASS - Status: {response.status_code}")
                passed += 1

                # Si es una respuesta JSON, mostrar resumen
                if "application/json" in response.headers.get("content-type", ""):
                    try:
                        data = response.json()
                    except ValueError:
                        data = None
                    if isinstance(data, list):
                        print(f"     📊 Items: {len(data)}")
                    elif isinstance(data, dict):
                        print(f"     📊 Keys: {list(data.keys())[:3]}")
            else:
                print(f"  ❌ FAIL - Expected {expected}, got {response.status_code}")
                print(f"     Response: {response.text[:200]}")
                failed += 1

        except requests.exceptions.Timeout:
            print("  ❌ FAIL - Timeout")
            failed += 1
        except requests.exceptions.ConnectionError:
            print("  ❌ FAIL - Connection error (¿Servicio corriendo?)")
            failed += 1
        except requests.exceptions.RequestException as e:
            print(f"  ❌ FAIL - {e}")
            failed += 1

        print()

    # Resumen
    total = passed + failed
    print("=" * 50)
    print(f"📊 Resumen: {passed}/{total} tests pasaron")
    if failed > 0:
        print(f"⚠️  {failed} tests fallaron")
        return False
    print("✅ Todos los tests pasaron!")
    return True


def main():
    if len(sys.argv) < 2:
        print("❌ Uso: python quick-test.py [local|prod]")
        sys.exit(1)

    mode = sys.argv[1].lower()

    if mode == "local":
        success = test_local()
    elif mode == "prod":
        success = test_prod()
    else:
        print(f"❌ Modo inválido: {mode}")
        print("   Usar 'local' o 'prod'")
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
