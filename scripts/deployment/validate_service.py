#!/usr/bin/env python3
"""
Validation script for URL Shortener service.
Exercises a live deployment over HTTP to confirm the public contract holds.

Usage:
    python validate_service.py --url https://sho.rt [--password ADMIN_PASSWORD]
"""

import sys
import time
import requests
from typing import Any, Callable, Optional
from datetime import datetime

TIMEOUT = 10


class ServiceValidator:
    """Validates URL shortener service functionality."""

    def __init__(self, base_url: str = "http://localhost:3000", password: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.password = password
        self.session = requests.Session()
        self.test_results = []
        # Unique per run so repeated validations do not collide
        self.run_id = str(int(time.time()))

    def print_header(self, text: str):
        """Print a formatted header."""
        print(f"\n{'='*60}")
        print(f"  {text}")
        print(f"{'='*60}\n")

    def print_test(self, name: str, passed: bool, details: str = ""):
        """Print test result."""
        status = "PASS" if passed else "FAIL"
        self.test_results.append((name, passed))
        print(f"[{status}] {name}")
        if details:
            print(f"       {details}")

    def _run(self, name: str, check: Callable[[], Any], default: Any = False) -> Any:
        """Run one check, recording transport and decoding errors as failures."""
        try:
            return check()
        except (requests.RequestException, ValueError) as e:
            self.print_test(name, False, f"Error: {e}")
            return default

    def _shorten(self, original_url: str, custom_name: Optional[str] = None) -> requests.Response:
        body = {"originalUrl": original_url}
        if custom_name:
            body["customName"] = custom_name
        return self.session.post(f"{self.base_url}/api/shorten", json=body, timeout=TIMEOUT)

    def test_health_check(self) -> bool:
        """Test health check endpoint."""
        def check():
            response = self.session.get(f"{self.base_url}/api/health", timeout=TIMEOUT)
            if response.status_code != 200:
                self.print_test("Health Check", False, f"Status: {response.status_code}")
                return False
            data = response.json()
            details = (
                f"Status: {data.get('status')}, Backend: {data.get('backend')}, "
                f"Pending reconciliation: {data.get('pendingReconciliation')}"
            )
            # Degraded still serves traffic; report it but keep validating
            self.print_test("Health Check", data.get("status") in ("healthy", "degraded"), details)
            return True

        return self._run("Health Check", check)

    def test_create_short_url(self) -> Optional[str]:
        """Test creating a short URL."""
        def check():
            response = self._shorten(f"https://example.com/validate/{self.run_id}")
            if response.status_code == 201:
                data = response.json()
                short_code = data.get("shortCode")
                if short_code:
                    self.print_test(
                        "Create Short URL",
                        True,
                        f"Code: {short_code}, URL: {data.get('shortUrl')}"
                    )
                    return short_code
            self.print_test("Create Short URL", False, f"Status: {response.status_code}")
            return None

        return self._run("Create Short URL", check, default=None)

    def test_stats(self, short_code: str) -> bool:
        """Test getting URL statistics."""
        def check():
            response = self.session.get(f"{self.base_url}/api/stats/{short_code}", timeout=TIMEOUT)
            if response.status_code != 200:
                self.print_test("Get Stats", False, f"Status: {response.status_code}")
                return False
            data = response.json()
            has_required_fields = all(
                key in data for key in ["shortCode", "originalUrl", "clicks", "createdAt", "expiresAt"]
            )
            self.print_test("Get Stats", has_required_fields, f"Clicks: {data.get('clicks', 0)}")
            return has_required_fields

        return self._run("Get Stats", check)

    def test_redirect(self, short_code: str) -> bool:
        """Test URL redirect functionality."""
        def check():
            response = self.session.get(
                f"{self.base_url}/{short_code}",
                allow_redirects=False,
                timeout=TIMEOUT
            )
            is_redirect = response.status_code == 302
            location = response.headers.get("Location", "")
            self.print_test(
                "URL Redirect",
                is_redirect,
                f"Redirects to: {location[:50]}..." if location else "No Location header"
            )
            return is_redirect

        return self._run("URL Redirect", check)

    def test_duplicate_custom_name(self) -> bool:
        """Test that a taken custom name is rejected and the original mapping kept."""
        def check():
            custom_name = f"validate{self.run_id}"
            first = self._shorten("https://example.com/custom", custom_name)
            if first.status_code != 201:
                self.print_test("Duplicate Name Rejection", False, f"Setup status: {first.status_code}")
                return False
            response = self._shorten("https://different-url.com", custom_name)
            is_rejected = response.status_code == 400
            self.print_test(
                "Duplicate Name Rejection",
                is_rejected,
                f"Status: {response.status_code} (expected 400): {response.json().get('error')}"
            )
            return is_rejected

        return self._run("Duplicate Name Rejection", check)

    def test_invalid_url(self) -> bool:
        """Test invalid URL rejection."""
        def check():
            response = self._shorten("not-a-valid-url")
            is_rejected = response.status_code == 400 and "error" in response.json()
            self.print_test(
                "Invalid URL Rejection",
                is_rejected,
                f"Status: {response.status_code} (expected 400)"
            )
            return is_rejected

        return self._run("Invalid URL Rejection", check)

    def test_not_found(self) -> bool:
        """Test unknown codes and static asset names."""
        def check():
            unknown = self.session.get(f"{self.base_url}/nonexistent{self.run_id}", allow_redirects=False, timeout=TIMEOUT)
            asset = self.session.get(f"{self.base_url}/style.css", allow_redirects=False, timeout=TIMEOUT)
            is_not_found = unknown.status_code == 404 and asset.status_code == 404
            self.print_test(
                "Unknown and Reserved Codes",
                is_not_found,
                f"Statuses: {unknown.status_code}, {asset.status_code} (expected 404, 404)"
            )
            return is_not_found

        return self._run("Unknown and Reserved Codes", check)

    def test_list_urls(self, short_code: Optional[str]) -> bool:
        """Test the full mapping listing."""
        def check():
            response = self.session.get(f"{self.base_url}/api/urls", timeout=TIMEOUT)
            data = response.json() if response.status_code == 200 else {}
            listed = short_code is None or short_code in data
            self.print_test("List URLs", response.status_code == 200 and listed, f"Total URLs: {len(data)}")
            return listed

        return self._run("List URLs", check)

    def test_delete(self, short_code: str) -> bool:
        """Test password-protected, idempotent delete."""
        def check():
            url = f"{self.base_url}/api/delete/{short_code}"
            denied = self.session.delete(url, json={"password": f"wrong{self.run_id}"}, timeout=TIMEOUT)
            first = self.session.delete(url, json={"password": self.password}, timeout=TIMEOUT)
            second = self.session.delete(url, json={"password": self.password}, timeout=TIMEOUT)
            passed = (
                denied.status_code == 401
                and first.status_code == 200 and first.json().get("deleted") == 1
                and second.status_code == 200 and second.json().get("deleted") == 0
            )
            self.print_test(
                "Delete Short URL",
                passed,
                f"Statuses: {denied.status_code}, {first.status_code}, {second.status_code} (expected 401, 200, 200)"
            )
            return passed

        return self._run("Delete Short URL", check)

    def run_all_tests(self) -> bool:
        """Run all validation tests."""
        self.print_header("URL Shortener Service Validation")
        print(f"Testing service at: {self.base_url}")
        print(f"Timestamp: {datetime.now().isoformat()}\n")

        # Basic connectivity
        if not self.test_health_check():
            print("\nHealth check failed. Service may not be running.")
            print(f"   Make sure the service is accessible at {self.base_url}")
            return False

        print()

        # Core functionality tests
        short_code = self.test_create_short_url()
        if short_code:
            self.test_redirect(short_code)
            self.test_stats(short_code)

        print()

        # Error paths
        self.test_duplicate_custom_name()
        self.test_invalid_url()
        self.test_not_found()

        print()

        self.test_list_urls(short_code)
        if short_code and self.password:
            self.test_delete(short_code)
        elif not self.password:
            print("Skipping delete check (no --password given)")

        # Print summary
        self.print_summary()

        # Return overall success
        return all(passed for _, passed in self.test_results)

    def print_summary(self):
        """Print test summary."""
        total = len(self.test_results)
        passed = sum(1 for _, p in self.test_results if p)
        failed = total - passed

        self.print_header("Test Summary")
        print(f"Total Tests:  {total}")
        print(f"Passed:       {passed}")
        print(f"Failed:       {failed}")
        if total:
            print(f"Success Rate: {(passed/total*100):.1f}%")

        if failed > 0:
            print("\nFailed tests:")
            for name, passed in self.test_results:
                if not passed:
                    print(f"   - {name}")

        print()


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Validate URL Shortener service functionality"
    )
    parser.add_argument(
        "--url",
        default="http://localhost:3000",
        help="Base URL of the service (default: http://localhost:3000)"
    )
    parser.add_argument(
        "--password",
        help="Admin password; enables the delete check"
    )

    args = parser.parse_args()

    validator = ServiceValidator(args.url, password=args.password)

    try:
        success = validator.run_all_tests()
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nValidation interrupted by user")
        sys.exit(2)


if __name__ == "__main__":
    main()
