import functools
import sys

import click
import yaml

from s3sign.auth import Authenticator
from s3sign.bucket import BUCKET_ATTRIBUTES, CANNED_ACLS, BucketManager
from s3sign.config import load_config
from s3sign.dispatch import Dispatcher
from s3sign.endpoint import compose, url_without_port
from s3sign.errors import HttpError, S3SignError
from s3sign.logging_config import configure_logging
from s3sign.objects import ObjectManager
from s3sign.printer import format_output
from s3sign.utils import S3Signer, rfc1123_date

METHODS = ['GET', 'PUT', 'POST', 'DELETE', 'HEAD']


def handle_errors(f):
    """Turn s3sign errors into a clean CLI failure."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except HttpError as e:
            detail = e.body.decode('utf-8', 'replace').strip() if e.body else ''
            raise click.ClickException(f"HTTP {e.status} {detail}".strip())
        except S3SignError as e:
            raise click.ClickException(str(e))
    return wrapper


def parse_pairs(pairs, sep='='):
    out = {}
    for pair in pairs:
        name, found, value = pair.partition(sep)
        if not found:
            raise click.BadParameter(f"expected NAME{sep}VALUE, got {pair!r}")
        out[name.strip()] = value.strip()
    return out


@click.group(context_settings=dict(help_option_names=['--help']))
@click.option('--profile', required=True, help='Profile name from .config.yaml')
@click.option('--config', 'config_path', default='.config.yaml',
              help='Path to configuration file')
@click.option('--format', 'outfmt', default='json',
              type=click.Choice(['json', 'yaml', 'table']))
@click.option('--log-level', default='WARNING',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
@click.option('--log-format', default='text', type=click.Choice(['text', 'json']))
@click.pass_context
def cli(ctx, profile, config_path, outfmt, log_level, log_format):
    """Sign requests and presign URLs for S3-compatible object storage."""
    configure_logging(log_level, log_format)
    try:
        config = load_config(profile, config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    # tests inject a transport and a clock through ``obj``
    injected = ctx.obj or {}
    clock = injected.get('clock')
    auth = Authenticator(config, clock) if clock else Authenticator(config)
    dispatcher = Dispatcher(injected.get('transport'), ssl_options=config.ssl_options)
    ctx.obj = {
        'profile': profile,
        'config': config,
        'auth': auth,
        'outfmt': outfmt,
        'bucket_mgr': BucketManager(auth, dispatcher),
        'object_mgr': ObjectManager(auth, dispatcher),
    }


@cli.command('endpoint')
@click.argument('bucket_name', default='')
@click.pass_context
def endpoint_cmd(ctx, bucket_name):
    """Show the normalized endpoint and the URL of a bucket."""
    config = ctx.obj['config']
    ep = config.endpoint
    format_output({
        'scheme': ep.scheme,
        'domain': ep.domain,
        'port': ep.port,
        'address_family': f"ipv{ep.address_family.value}",
        'addressing_mode': config.addressing_mode.value,
        'url': compose(ep, config.addressing_mode, bucket_name),
        'url_noport': url_without_port(ep),
    }, ctx.obj['outfmt'])


@cli.command('presign')
@click.argument('method', type=click.Choice(METHODS, case_sensitive=False))
@click.argument('bucket_name')
@click.argument('key')
@click.option('--ttl', default=900, type=click.IntRange(min=0), help='Validity in seconds')
@click.option('--window', type=click.IntRange(min=1),
              help='Expiration window size in seconds')
@click.option('--header', 'headers', multiple=True, help='Signed header NAME=VALUE')
@click.pass_context
@handle_errors
def presign_cmd(ctx, method, bucket_name, key, ttl, window, headers):
    """Print a presigned (v4) URL."""
    url = ctx.obj['auth'].presign(method, bucket_name, key, ttl, window_size=window,
                                  headers=parse_pairs(headers))
    click.echo(url)


@cli.command('presign-v2')
@click.argument('method', type=click.Choice(METHODS, case_sensitive=False))
@click.argument('bucket_name')
@click.argument('key')
@click.option('--ttl', default=900, type=click.IntRange(min=0))
@click.option('--window', type=click.IntRange(min=1))
@click.pass_context
@handle_errors
def presign_v2_cmd(ctx, method, bucket_name, key, ttl, window):
    """Print a legacy query-string authenticated URL."""
    click.echo(ctx.obj['auth'].presign_v2(method, bucket_name, key, ttl, window_size=window))


@cli.command('sign-v2')
@click.argument('method')
@click.argument('resource')
@click.option('--bucket', 'host', default='', help='Bucket rendered as /bucket')
@click.option('--content-md5', default='')
@click.option('--content-type', default='')
@click.option('--date', default=None, help='Date header value (default: now)')
@click.option('--amz-header', 'amz_headers', multiple=True, help='x-amz-* header NAME:VALUE')
@click.option('--subresource', default='')
@click.pass_context
@handle_errors
def sign_v2_cmd(ctx, method, resource, host, content_md5, content_type, date,
                amz_headers, subresource):
    """Show the v2 string to sign and Authorization header for a request."""
    auth = ctx.obj['auth']
    string_to_sign, authorization = S3Signer.sign_v2(
        auth.config, method, content_md5, content_type, date or rfc1123_date(auth.now()),
        parse_pairs(amz_headers, sep=':'), host, resource, subresource)
    format_output({'string_to_sign': string_to_sign, 'authorization': authorization},
                  ctx.obj['outfmt'])


@cli.group()
def bucket():
    """Bucket operations."""


@bucket.command('list')
@click.pass_context
@handle_errors
def bucket_list_cmd(ctx):
    format_output(ctx.obj['bucket_mgr'].list_buckets(), ctx.obj['outfmt'])


@bucket.command('create')
@click.argument('bucket_name')
@click.option('--acl', default='private', type=click.Choice(sorted(CANNED_ACLS)))
@click.option('--location', default=None, help='Location constraint')
@click.pass_context
@handle_errors
def bucket_create_cmd(ctx, bucket_name, acl, location):
    res = ctx.obj['bucket_mgr'].create_bucket(bucket_name, acl=acl,
                                              location_constraint=location)
    format_output(res, ctx.obj['outfmt'])


@bucket.command('delete')
@click.argument('bucket_name')
@click.pass_context
@handle_errors
def bucket_delete_cmd(ctx, bucket_name):
    format_output(ctx.obj['bucket_mgr'].delete_bucket(bucket_name), ctx.obj['outfmt'])


@bucket.command('objects')
@click.argument('bucket_name')
@click.option('--prefix', default=None, help='Filter prefix')
@click.option('--marker', default=None)
@click.option('--max-keys', type=int, default=None)
@click.option('--delimiter', default=None)
@click.pass_context
@handle_errors
def bucket_objects_cmd(ctx, bucket_name, prefix, marker, max_keys, delimiter):
    """List objects in a bucket, optionally filtered by prefix."""
    listing = ctx.obj['bucket_mgr'].list_objects(bucket_name, prefix=prefix, marker=marker,
                                                 max_keys=max_keys, delimiter=delimiter)
    if ctx.obj['outfmt'] == 'table':
        format_output([{k: v for k, v in obj.items() if k != 'owner'}
                       for obj in listing['contents']], 'table')
    else:
        format_output(listing, ctx.obj['outfmt'])


@bucket.command('versions')
@click.argument('bucket_name')
@click.option('--prefix', default=None)
@click.option('--key-marker', default=None)
@click.option('--version-id-marker', default=None)
@click.option('--max-keys', type=int, default=None)
@click.option('--delimiter', default=None)
@click.pass_context
@handle_errors
def bucket_versions_cmd(ctx, bucket_name, prefix, key_marker, version_id_marker, max_keys,
                        delimiter):
    """List object versions and delete markers."""
    listing = ctx.obj['bucket_mgr'].list_object_versions(
        bucket_name, prefix=prefix, key_marker=key_marker,
        version_id_marker=version_id_marker, max_keys=max_keys, delimiter=delimiter)
    if ctx.obj['outfmt'] == 'table':
        rows = [{'key': v['key'], 'version_id': v['version_id'], 'is_latest': v['is_latest'],
                 'delete_marker': 'etag' not in v, 'last_modified': v['last_modified']}
                for v in listing['versions'] + listing['delete_markers']]
        format_output(rows, 'table')
    else:
        format_output(listing, ctx.obj['outfmt'])


@bucket.command('get-attr')
@click.argument('bucket_name')
@click.argument('attribute', type=click.Choice(sorted(BUCKET_ATTRIBUTES)))
@click.pass_context
@handle_errors
def bucket_get_attr_cmd(ctx, bucket_name, attribute):
    value = ctx.obj['bucket_mgr'].get_bucket_attribute(bucket_name, attribute)
    format_output({attribute: value}, ctx.obj['outfmt'])


@bucket.command('set-attr')
@click.argument('bucket_name')
@click.argument('attribute', type=click.Choice(['acl', 'request_payment', 'versioning']))
@click.argument('value')
@click.pass_context
@handle_errors
def bucket_set_attr_cmd(ctx, bucket_name, attribute, value):
    try:
        res = ctx.obj['bucket_mgr'].set_bucket_attribute(bucket_name, attribute, value)
    except (KeyError, ValueError) as e:
        raise click.BadParameter(f"invalid value {value!r} for {attribute}") from e
    format_output(res, ctx.obj['outfmt'])


@cli.group('object')
def object_group():
    """Object operations."""


@object_group.command('get')
@click.argument('bucket_name')
@click.argument('key')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None,
              help='Write the content to a file instead of stdout')
@click.option('--version-id', default=None)
@click.pass_context
@handle_errors
def object_get_cmd(ctx, bucket_name, key, output, version_id):
    info = ctx.obj['object_mgr'].get_object(bucket_name, key, version_id=version_id)
    content = info.pop('content')
    if output is None:
        click.get_binary_stream('stdout').write(content)
        return
    with open(output, 'wb') as f:
        f.write(content)
    format_output(info, ctx.obj['outfmt'])


@object_group.command('put')
@click.argument('bucket_name')
@click.argument('key')
@click.argument('source', type=click.File('rb'))
@click.option('--content-type', default=None)
@click.option('--acl', default=None, type=click.Choice(sorted(CANNED_ACLS)))
@click.option('--meta', multiple=True, help='User metadata NAME=VALUE')
@click.pass_context
@handle_errors
def object_put_cmd(ctx, bucket_name, key, source, content_type, acl, meta):
    res = ctx.obj['object_mgr'].put_object(bucket_name, key, source.read(),
                                           content_type=content_type,
                                           metadata=parse_pairs(meta), acl=acl)
    format_output(res, ctx.obj['outfmt'])


@object_group.command('head')
@click.argument('bucket_name')
@click.argument('key')
@click.option('--version-id', default=None)
@click.pass_context
@handle_errors
def object_head_cmd(ctx, bucket_name, key, version_id):
    format_output(ctx.obj['object_mgr'].get_object_metadata(bucket_name, key, version_id),
                  ctx.obj['outfmt'])


@object_group.command('set-acl')
@click.argument('bucket_name')
@click.argument('key')
@click.argument('acl', type=click.Choice(sorted(CANNED_ACLS)))
@click.option('--version-id', default=None)
@click.pass_context
@handle_errors
def object_set_acl_cmd(ctx, bucket_name, key, acl, version_id):
    res = ctx.obj['object_mgr'].set_object_acl(bucket_name, key, acl, version_id=version_id)
    format_output(res, ctx.obj['outfmt'])


@object_group.command('delete')
@click.argument('bucket_name')
@click.argument('key')
@click.option('--version-id', default=None)
@click.pass_context
@handle_errors
def object_delete_cmd(ctx, bucket_name, key, version_id):
    om = ctx.obj['object_mgr']
    if version_id:
        res = om.delete_object_version(bucket_name, key, version_id)
    else:
        res = om.delete_object(bucket_name, key)
    format_output(res, ctx.obj['outfmt'])


@object_group.command('copy')
@click.argument('src_bucket')
@click.argument('src_key')
@click.argument('dest_bucket')
@click.argument('dest_key')
@click.option('--metadata-directive', type=click.Choice(['COPY', 'REPLACE']), default=None)
@click.pass_context
@handle_errors
def object_copy_cmd(ctx, src_bucket, src_key, dest_bucket, dest_key, metadata_directive):
    res = ctx.obj['object_mgr'].copy_object(dest_bucket, dest_key, src_bucket, src_key,
                                            metadata_directive=metadata_directive)
    format_output(res, ctx.obj['outfmt'])


if __name__ == '__main__':
    cli()
