import jinja2

#: strips debug symbols from the installed PostgreSQL libraries
_STRIP_LIBRARIES = (
    '{ find /usr/lib/postgresql/{{ pg_major }}/lib -name "*.so" -type f'
    ' -exec strip --strip-unneeded {} \\; 2>/dev/null || true; }'
)

#: ``RUN`` instruction installing the PGDG packages of the production image
PGDG_INSTALL_TEMPLATE = jinja2.Template(
    """RUN set -eu && \\
    rm -rf /var/lib/apt/lists/* && \\
    apt-get update && \\
    apt-get install -y --no-install-recommends \\
{%- for pkg in packages %}
      {{ pkg.token }} \\
{%- endfor %}
    && \\
    EXPECTED_PGDG_COUNT={{ packages | length }} && \\
    INSTALLED_COUNT=$(dpkg -l | grep -c "^ii.*postgresql-{{ pg_major }}-") && \\
    echo "Installed $INSTALLED_COUNT PGDG package(s), expected at least $EXPECTED_PGDG_COUNT" && \\
    { test "$INSTALLED_COUNT" -ge "$EXPECTED_PGDG_COUNT" || { echo "ERROR: fewer PGDG packages installed than requested" && exit 1; }; } && \\
{%- for pkg in packages if pkg.library %}
    { test -f /usr/lib/postgresql/{{ pg_major }}/lib/{{ pkg.library }}.so || { echo "ERROR: {{ pkg.library }}.so missing after installing {{ pkg.name }}" && exit 1; }; } && \\
{%- endfor %}
    apt-get clean && \\
    rm -rf /var/lib/apt/lists/* && \\
    """
    + _STRIP_LIBRARIES
)

#: ``RUN`` instruction of an image without PGDG packages
PGDG_INSTALL_EMPTY_TEMPLATE = jinja2.Template(
    "RUN EXPECTED_PGDG_COUNT=0 && \\\n"
    '    echo "No PGDG packages enabled in {{ mode }} mode"'
)

#: ``RUN`` instruction of the regression image: every package is optional
PGDG_INSTALL_REGRESSION_TEMPLATE = jinja2.Template(
    """RUN set -u && \\
    rm -rf /var/lib/apt/lists/* && \\
    apt-get update && \\
    for pkg in \\
{%- for pkg in packages %}
      {{ pkg.token }} \\
{%- endfor %}
    ; do \\
      if apt-get install -y --no-install-recommends "$pkg"; then \\
        echo "Installed $pkg"; \\
      else \\
        echo "Skipped $pkg (not available for PostgreSQL {{ pg_major }})"; \\
      fi; \\
    done && \\
    apt-get clean && \\
    rm -rf /var/lib/apt/lists/* && \\
    """
    + _STRIP_LIBRARIES
)

#: pinned PGDG versions as build arguments, in install order
PGDG_VERSION_ARGS_TEMPLATE = jinja2.Template(
    """{% for arg in args -%}
ARG {{ arg.name }}={{ arg.version }}
{% endfor %}"""
)

_BANNER = "=" * 79

VERSION_INFO_TXT_TEMPLATE = jinja2.Template(
    _BANNER
    + """
aza-pg - PostgreSQL {{ stats.pg_major }} with Extensions
"""
    + _BANNER
    + """

PostgreSQL Version: {{ stats.pg_version }}
Build Type: {{ stats.build_type }}

SUMMARY
  Total Catalog: {{ stats.total }}
  Enabled: {{ stats.enabled }}
  Disabled: {{ stats.disabled }}
  Preloaded: {{ stats.preloaded }}
  PGDG Packages: {{ stats.pgdg }}

BY KIND
{% for kind in stats.kinds -%}
{{ "  %-10s"|format(kind.kind) }} total {{ kind.total }}, enabled {{ kind.enabled }}, disabled {{ kind.disabled }}
{% endfor %}
PRELOADED MODULES
  {{ stats.preloaded_modules | join(",") or "(none)" }}
{% if stats.disabled_entries %}
DISABLED
{% for entry in stats.disabled_entries %}  {{ entry.name }}: {{ entry.reason }}
{% endfor %}{% endif %}
"""
    + _BANNER
    + """
Use CREATE EXTENSION <name>; to enable available extensions
View manifest: cat /etc/postgresql/extensions.manifest.json
"""
    + _BANNER
    + "\n"
)

_BOX = "═" * 63

IMAGE_CONTENTS_TEMPLATE = jinja2.Template(
    """╔"""
    + _BOX
    + """╗
{{ ("║  aza-pg Single-Node PostgreSQL " ~ pg_version).ljust(64) }}║
╚"""
    + _BOX
    + """╝

"""
    + _BOX
    + """
EXTENSIONS (CREATE EXTENSION available)
"""
    + _BOX
    + """

{% for row in extensions -%}
{{ ("  " ~ row.name.ljust(28) ~ " " ~ row.version.ljust(14) ~ " " ~ row.category).rstrip() }}
{% endfor %}
Total: {{ extensions | length }} extensions

"""
    + _BOX
    + """
TOOLS (command-line utilities)
"""
    + _BOX
    + """

{% for row in tools -%}
{{ ("  " ~ row.name.ljust(28) ~ " " ~ row.version).rstrip() }}
{% endfor %}
"""
    + _BOX
    + """
PRELOADED MODULES (shared_preload_libraries default)
"""
    + _BOX
    + """

  {{ preloaded | join(", ") }}

  Configure via POSTGRES_SHARED_PRELOAD_LIBRARIES environment variable.
"""
)

EXTENSIONS_TABLE_START = "<!-- extensions-table:start -->"
EXTENSIONS_TABLE_END = "<!-- extensions-table:end -->"

EXTENSIONS_TABLE_TEMPLATE = jinja2.Template(
    """{% for group in groups -%}
### {{ group.category }}

| Extension | Version | Enabled by Default | Shared Preload | Documentation | Notes |
| --- | --- | --- | --- | --- | --- |
{% for row in group.rows -%}
| {{ row.name }} | {{ row.version }} | {{ row.default_enabled }} | {{ row.shared_preload }} | {{ row.documentation }} | {{ row.notes }} |
{% endfor %}
{% endfor %}"""
)

EXTENSIONS_MD_SKELETON = (
    """# Extensions

Extensions, tools and modules shipped with the aza-pg image. The tables below
are generated from `docker/postgres/extensions.manifest.json`, edit the
manifest instead of this section.

"""
    + EXTENSIONS_TABLE_START
    + "\n"
    + EXTENSIONS_TABLE_END
    + "\n"
)
